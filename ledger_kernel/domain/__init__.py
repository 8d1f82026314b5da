"""Pure domain layer: events, chart roles, posting rules and clocks."""

from ledger_kernel.domain.chart import AccountDefinition, AccountRole, ChartOfAccounts
from ledger_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SequentialClock,
    SystemClock,
)
from ledger_kernel.domain.events import (
    InvoiceEvent,
    PaymentDirection,
    PaymentEvent,
    PaymentMethod,
    PaymentStatus,
    PurchaseEvent,
)
from ledger_kernel.domain.posting_rules import (
    EntrySpec,
    PostingRuleRegistry,
    validate_group,
)

__all__ = [
    "AccountDefinition",
    "AccountRole",
    "ChartOfAccounts",
    "Clock",
    "DeterministicClock",
    "EntrySpec",
    "InvoiceEvent",
    "PaymentDirection",
    "PaymentEvent",
    "PaymentMethod",
    "PaymentStatus",
    "PostingRuleRegistry",
    "PurchaseEvent",
    "SequentialClock",
    "SystemClock",
    "validate_group",
]
