"""
Posting rules -- deterministic transformation of source events into entry lines.

Responsibility:
    Each rule turns one event record into the ordered list of single-sided
    ``EntrySpec`` lines for its posting group.  ``validate_group`` checks the
    double-entry laws on those lines before anything touches the database.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Lines name account
    roles; LedgerPoster resolves roles to account ids.

Invariants enforced:
    - Every line is single-sided: one of debit/credit strictly positive, the
      other zero (InvalidEntryAmountError otherwise).
    - sum(debit) == sum(credit) per group (UnbalancedGroupError otherwise).
      An unbalanced group is never coerced into balance.

Rule table:

    Event                     | Debit              | Credit
    --------------------------|--------------------|-------------------------
    invoice                   | receivable: total  | sales: total - tax
                              |                    | tax_payable: tax (if > 0)
    purchase                  | inventory: total   | payable: total
    payment inflow            | cash|bank: amount  | receivable: amount
    payment outflow           | payable: amount    | cash|bank: amount

    A negative tax amount produces no tax line, leaving the group
    unbalanced, so malformed tax data surfaces as UnbalancedGroupError.
    Documents whose every amount is zero produce no lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from ledger_kernel.domain.chart import AccountRole
from ledger_kernel.domain.events import (
    InvoiceEvent,
    PaymentDirection,
    PaymentEvent,
    PaymentMethod,
    PurchaseEvent,
)
from ledger_kernel.exceptions import InvalidEntryAmountError, UnbalancedGroupError
from ledger_kernel.models.ledger import ReferenceType

ZERO = Decimal("0")


@dataclass(frozen=True)
class EntrySpec:
    """One line of a posting group, before account resolution."""

    role: AccountRole
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    customer_id: UUID | None = None
    supplier_id: UUID | None = None
    memo: str | None = None

    @classmethod
    def debit_line(cls, role: AccountRole, amount: Decimal, **kwargs) -> EntrySpec:
        return cls(role=role, debit=amount, credit=ZERO, **kwargs)

    @classmethod
    def credit_line(cls, role: AccountRole, amount: Decimal, **kwargs) -> EntrySpec:
        return cls(role=role, debit=ZERO, credit=amount, **kwargs)

    @property
    def is_single_sided(self) -> bool:
        return (self.debit > ZERO and self.credit == ZERO) or (
            self.credit > ZERO and self.debit == ZERO
        )


@runtime_checkable
class PostingRule(Protocol):
    """
    Protocol for posting rules.

    Each rule is deterministic (same event, same lines) and stateless.
    """

    @property
    def reference_type(self) -> ReferenceType:
        ...

    def compute_lines(self, event) -> list[EntrySpec]:
        ...


class InvoicePostingRule:
    reference_type = ReferenceType.INVOICE

    def compute_lines(self, invoice: InvoiceEvent) -> list[EntrySpec]:
        if invoice.grand_total == ZERO and invoice.total_tax == ZERO:
            return []

        net_revenue = invoice.grand_total - invoice.total_tax
        lines = [
            EntrySpec.debit_line(
                AccountRole.RECEIVABLE,
                invoice.grand_total,
                customer_id=invoice.customer_id,
                memo="Invoice receivable",
            ),
        ]
        # A fully taxed invoice has no revenue line; a negative one is rejected
        if net_revenue != ZERO:
            lines.append(
                EntrySpec.credit_line(AccountRole.SALES, net_revenue, memo="Invoice revenue")
            )
        if invoice.total_tax > ZERO:
            lines.append(
                EntrySpec.credit_line(
                    AccountRole.TAX_PAYABLE,
                    invoice.total_tax,
                    memo="Invoice tax",
                )
            )
        return lines


class PurchasePostingRule:
    reference_type = ReferenceType.PURCHASE

    def compute_lines(self, purchase: PurchaseEvent) -> list[EntrySpec]:
        if purchase.grand_total == ZERO:
            return []

        return [
            EntrySpec.debit_line(
                AccountRole.INVENTORY,
                purchase.grand_total,
                memo="Purchase inventory",
            ),
            EntrySpec.credit_line(
                AccountRole.PAYABLE,
                purchase.grand_total,
                supplier_id=purchase.supplier_id,
                memo="Purchase payable",
            ),
        ]


class PaymentPostingRule:
    reference_type = ReferenceType.PAYMENT

    def compute_lines(self, payment: PaymentEvent) -> list[EntrySpec]:
        if payment.amount == ZERO:
            return []

        asset = (
            AccountRole.CASH if payment.method == PaymentMethod.CASH else AccountRole.BANK
        )

        if payment.direction == PaymentDirection.INFLOW:
            return [
                EntrySpec.debit_line(asset, payment.amount, memo="Payment received"),
                EntrySpec.credit_line(
                    AccountRole.RECEIVABLE,
                    payment.amount,
                    customer_id=payment.customer_id,
                    memo="Payment received",
                ),
            ]

        return [
            EntrySpec.debit_line(
                AccountRole.PAYABLE,
                payment.amount,
                supplier_id=payment.supplier_id,
                memo="Payment made",
            ),
            EntrySpec.credit_line(asset, payment.amount, memo="Payment made"),
        ]


class PostingRuleRegistry:
    """Lookup of posting rules by reference type."""

    def __init__(self, rules: list[PostingRule] | None = None):
        self._rules: dict[ReferenceType, PostingRule] = {}
        for rule in rules or []:
            self.register(rule)

    @classmethod
    def default(cls) -> PostingRuleRegistry:
        return cls([InvoicePostingRule(), PurchasePostingRule(), PaymentPostingRule()])

    def register(self, rule: PostingRule) -> None:
        self._rules[ReferenceType(rule.reference_type)] = rule

    def get_rule(self, reference_type: ReferenceType) -> PostingRule:
        try:
            return self._rules[ReferenceType(reference_type)]
        except KeyError:
            raise ValueError(
                f"No posting rule registered for reference type: {reference_type}"
            ) from None

    def compute_lines(self, event) -> list[EntrySpec]:
        return self.get_rule(event.reference_type).compute_lines(event)


def validate_group(
    reference_type: ReferenceType,
    reference_id: UUID,
    lines: list[EntrySpec],
) -> Decimal:
    """
    Check the double-entry laws on a group of lines.

    Returns:
        The group total (sum of debits, equal to sum of credits).

    Raises:
        InvalidEntryAmountError: A line is negative, zero or two-sided.
        UnbalancedGroupError: Debits and credits differ.
    """
    ref_type = ReferenceType(reference_type).value
    for line in lines:
        if line.debit < ZERO or line.credit < ZERO or not line.is_single_sided:
            raise InvalidEntryAmountError(
                reference_type=ref_type,
                reference_id=str(reference_id),
                account_code=AccountRole(line.role).value,
                debit=str(line.debit),
                credit=str(line.credit),
            )

    debits = sum((line.debit for line in lines), ZERO)
    credits = sum((line.credit for line in lines), ZERO)
    if debits != credits:
        raise UnbalancedGroupError(
            reference_type=ref_type,
            reference_id=str(reference_id),
            debits=str(debits),
            credits=str(credits),
        )
    return debits
