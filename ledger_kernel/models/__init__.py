"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import (
    NORMAL_BALANCE_BY_TYPE,
    Account,
    AccountType,
    NormalBalance,
)
from ledger_kernel.models.ledger import (
    LedgerEntry,
    PostingGroup,
    PostingSource,
    ReferenceType,
)

__all__ = [
    "NORMAL_BALANCE_BY_TYPE",
    "Account",
    "AccountType",
    "LedgerEntry",
    "NormalBalance",
    "PostingGroup",
    "PostingSource",
    "ReferenceType",
]
