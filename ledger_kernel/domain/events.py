"""
Source events -- typed records for the three business documents the ledger posts.

Responsibility:
    Turns upstream invoice, purchase and payment documents into explicit,
    validated, immutable records.  Every field a posting rule reads is
    present and typed after construction; there is no field-presence
    ambiguity downstream.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - organization_id is present (ConfigurationError otherwise).
    - Identifiers are UUIDs, dates are ``date``, amounts are ``Decimal``
      quantized to cents with ROUND_HALF_UP.  Quantizing the inputs (not
      the derived lines) keeps derived amounts such as net revenue exact.

Non-goals:
    - Sign and balance checks belong to posting rule validation, which
      raises InvariantViolation.  A negative tax amount is representable
      here so that it is reported as malformed ledger data, not as a
      configuration problem.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, ClassVar, Mapping
from uuid import UUID

from ledger_kernel.exceptions import ConfigurationError
from ledger_kernel.models.ledger import ReferenceType

CENT = Decimal("0.01")


class PaymentDirection(str, Enum):
    """Inflow is money received from a customer, outflow is paid to a supplier."""

    INFLOW = "inflow"
    OUTFLOW = "outflow"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK = "bank"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _uuid(value: Any, field_name: str, required: bool = True) -> UUID | None:
    if value is None:
        if required:
            raise ConfigurationError(f"Missing required field '{field_name}'", field=field_name)
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ConfigurationError(
            f"Field '{field_name}' is not a valid identifier: {value!r}",
            field=field_name,
        ) from None


def _date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    raise ConfigurationError(
        f"Field '{field_name}' is not a valid date: {value!r}", field=field_name
    )


def _amount(value: Any, field_name: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ConfigurationError(
            f"Field '{field_name}' is not a valid amount: {value!r}", field=field_name
        )
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(
            f"Field '{field_name}' is not a valid amount: {value!r}", field=field_name
        ) from None
    if not amount.is_finite():
        raise ConfigurationError(
            f"Field '{field_name}' is not a finite amount: {value!r}", field=field_name
        )
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _choice(enum_cls: type[Enum], value: Any, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(
            f"Field '{field_name}' must be one of [{allowed}], got {value!r}",
            field=field_name,
        ) from None


def _require_organization(value: Any) -> UUID:
    if value is None or value == "":
        raise ConfigurationError(
            "Missing organization context", field="organization_id"
        )
    return _uuid(value, "organization_id")


def _normalize(event: Any, values: dict[str, Any]) -> None:
    for name, value in values.items():
        object.__setattr__(event, name, value)


# ---------------------------------------------------------------------------
# Event records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoiceEvent:
    """A finalized sales invoice."""

    reference_type: ClassVar[ReferenceType] = ReferenceType.INVOICE

    id: UUID
    organization_id: UUID
    date: date
    grand_total: Decimal
    total_tax: Decimal = Decimal("0")
    branch_id: UUID | None = None
    customer_id: UUID | None = None

    def __post_init__(self):
        _normalize(self, {
            "organization_id": _require_organization(self.organization_id),
            "id": _uuid(self.id, "id"),
            "date": _date(self.date, "date"),
            "grand_total": _amount(self.grand_total, "grand_total"),
            "total_tax": _amount(self.total_tax, "total_tax"),
            "branch_id": _uuid(self.branch_id, "branch_id", required=False),
            "customer_id": _uuid(self.customer_id, "customer_id", required=False),
        })

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> InvoiceEvent:
        return cls(
            id=data.get("id"),
            organization_id=data.get("organization_id"),
            date=data.get("date"),
            grand_total=data.get("grand_total"),
            total_tax=data.get("total_tax", 0),
            branch_id=data.get("branch_id"),
            customer_id=data.get("customer_id"),
        )


@dataclass(frozen=True)
class PurchaseEvent:
    """A received purchase bill."""

    reference_type: ClassVar[ReferenceType] = ReferenceType.PURCHASE

    id: UUID
    organization_id: UUID
    date: date
    grand_total: Decimal
    supplier_id: UUID | None = None
    branch_id: UUID | None = None

    def __post_init__(self):
        _normalize(self, {
            "organization_id": _require_organization(self.organization_id),
            "id": _uuid(self.id, "id"),
            "date": _date(self.date, "date"),
            "grand_total": _amount(self.grand_total, "grand_total"),
            "supplier_id": _uuid(self.supplier_id, "supplier_id", required=False),
            "branch_id": _uuid(self.branch_id, "branch_id", required=False),
        })

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PurchaseEvent:
        return cls(
            id=data.get("id"),
            organization_id=data.get("organization_id"),
            date=data.get("date"),
            grand_total=data.get("grand_total"),
            supplier_id=data.get("supplier_id"),
            branch_id=data.get("branch_id"),
        )


@dataclass(frozen=True)
class PaymentEvent:
    """
    Money received from a customer or paid to a supplier.

    ``is_automated`` marks payments generated by the linked-installment
    subsystem, which posts through its own path.
    """

    reference_type: ClassVar[ReferenceType] = ReferenceType.PAYMENT

    id: UUID
    organization_id: UUID
    date: date
    amount: Decimal
    direction: PaymentDirection
    method: PaymentMethod = PaymentMethod.CASH
    customer_id: UUID | None = None
    supplier_id: UUID | None = None
    is_automated: bool = False
    status: PaymentStatus = PaymentStatus.COMPLETED
    branch_id: UUID | None = None

    def __post_init__(self):
        _normalize(self, {
            "organization_id": _require_organization(self.organization_id),
            "id": _uuid(self.id, "id"),
            "date": _date(self.date, "date"),
            "amount": _amount(self.amount, "amount"),
            "direction": _choice(PaymentDirection, self.direction, "direction"),
            "method": _choice(PaymentMethod, self.method, "method"),
            "customer_id": _uuid(self.customer_id, "customer_id", required=False),
            "supplier_id": _uuid(self.supplier_id, "supplier_id", required=False),
            "is_automated": bool(self.is_automated),
            "status": _choice(PaymentStatus, self.status, "status"),
            "branch_id": _uuid(self.branch_id, "branch_id", required=False),
        })

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PaymentEvent:
        return cls(
            id=data.get("id"),
            organization_id=data.get("organization_id"),
            date=data.get("date"),
            amount=data.get("amount"),
            direction=data.get("direction"),
            method=data.get("method", PaymentMethod.CASH.value),
            customer_id=data.get("customer_id"),
            supplier_id=data.get("supplier_id"),
            is_automated=data.get("is_automated", False),
            status=data.get("status", PaymentStatus.COMPLETED.value),
            branch_id=data.get("branch_id"),
        )


SourceEvent = InvoiceEvent | PurchaseEvent | PaymentEvent

EVENT_TYPES: dict[ReferenceType, type] = {
    ReferenceType.INVOICE: InvoiceEvent,
    ReferenceType.PURCHASE: PurchaseEvent,
    ReferenceType.PAYMENT: PaymentEvent,
}
