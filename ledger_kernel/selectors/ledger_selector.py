"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Aggregation queries over posted ledger entries -- totals per
    account type, trial balance rows, per-account balances and
    customer/supplier balances.  Statements are derived views; there are
    no stored balances.
Architecture position: Kernel > Selectors.  Consumed by
    ledger_reporting.service.StatementService.

Invariants enforced:
    - Every query is scoped to one organization_id.
    - Date filters apply to LedgerEntry.entry_date; a None bound is open.
    - An optional branch filter restricts entries to one branch.
    - Amounts are returned as cent-quantized Decimals.

Failure modes:
    - Returns zero totals / empty lists when no entries match.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.ledger import LedgerEntry
from ledger_kernel.selectors.base import BaseSelector, to_money


@dataclass(frozen=True)
class TypeTotals:
    """Debit and credit sums over all entries of one account type."""

    account_type: AccountType
    debit_total: Decimal
    credit_total: Decimal


@dataclass(frozen=True)
class TrialBalanceRow:
    """A single row in a trial balance."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class AccountBalanceRow:
    """Per-account totals, including accounts without entries."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    is_group: bool
    is_active: bool
    debit_total: Decimal
    credit_total: Decimal
    entry_count: int
    parent_id: UUID | None = None


@dataclass(frozen=True)
class PartyTotals:
    """Sums of the entries tagged with one customer or supplier."""

    debit_total: Decimal
    credit_total: Decimal
    entry_count: int


class LedgerSelector(BaseSelector[LedgerEntry]):
    """
    Aggregations over ledger_entries joined to accounts.

    Each public method issues exactly one query, so callers can enforce a
    deadline between calls.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _entry_filters(
        self,
        organization_id: UUID,
        start_date: date | None,
        end_date: date | None,
        branch_id: UUID | None,
    ) -> list:
        filters = [LedgerEntry.organization_id == organization_id]
        if start_date is not None:
            filters.append(LedgerEntry.entry_date >= start_date)
        if end_date is not None:
            filters.append(LedgerEntry.entry_date <= end_date)
        if branch_id is not None:
            filters.append(LedgerEntry.branch_id == branch_id)
        return filters

    def type_totals(
        self,
        organization_id: UUID,
        account_types: tuple[AccountType, ...],
        start_date: date | None = None,
        end_date: date | None = None,
        branch_id: UUID | None = None,
    ) -> dict[AccountType, TypeTotals]:
        """
        Sum debits and credits per account type.

        Every requested type is present in the result, with zero totals
        when no entries match.
        """
        query = (
            select(
                Account.account_type,
                func.sum(LedgerEntry.debit).label("debit_total"),
                func.sum(LedgerEntry.credit).label("credit_total"),
            )
            .select_from(LedgerEntry)
            .join(Account, LedgerEntry.account_id == Account.id)
            .where(
                *self._entry_filters(organization_id, start_date, end_date, branch_id),
                Account.account_type.in_([AccountType(t).value for t in account_types]),
            )
            .group_by(Account.account_type)
        )

        totals = {
            AccountType(t): TypeTotals(AccountType(t), to_money(None), to_money(None))
            for t in account_types
        }
        for row in self.session.execute(query).all():
            account_type = AccountType(row.account_type)
            totals[account_type] = TypeTotals(
                account_type=account_type,
                debit_total=to_money(row.debit_total),
                credit_total=to_money(row.credit_total),
            )
        return totals

    def trial_balance(
        self,
        organization_id: UUID,
        as_of_date: date | None = None,
        branch_id: UUID | None = None,
    ) -> list[TrialBalanceRow]:
        """
        Per-account debit and credit totals of entries dated <= as_of_date.

        Only accounts with at least one entry appear; rows are ordered by
        account code ascending.
        """
        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                func.sum(LedgerEntry.debit).label("debit_total"),
                func.sum(LedgerEntry.credit).label("credit_total"),
            )
            .select_from(LedgerEntry)
            .join(Account, LedgerEntry.account_id == Account.id)
            .where(*self._entry_filters(organization_id, None, as_of_date, branch_id))
            .group_by(Account.id, Account.code, Account.name, Account.account_type)
            .order_by(Account.code)
        )

        return [
            TrialBalanceRow(
                account_id=row.id,
                account_code=row.code,
                account_name=row.name,
                account_type=AccountType(row.account_type),
                debit_total=to_money(row.debit_total),
                credit_total=to_money(row.credit_total),
            )
            for row in self.session.execute(query).all()
        ]

    def account_balances(
        self,
        organization_id: UUID,
        as_of_date: date | None = None,
        account_type: AccountType | None = None,
        search: str | None = None,
    ) -> list[AccountBalanceRow]:
        """
        Totals for every account of the organization, ordered by code.

        Accounts without entries are included with zero totals.  ``search``
        matches a case-insensitive substring of the code or the name.
        """
        join_on = [LedgerEntry.account_id == Account.id]
        if as_of_date is not None:
            join_on.append(LedgerEntry.entry_date <= as_of_date)

        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                Account.is_group,
                Account.is_active,
                Account.parent_id,
                func.sum(LedgerEntry.debit).label("debit_total"),
                func.sum(LedgerEntry.credit).label("credit_total"),
                func.count(LedgerEntry.id).label("entry_count"),
            )
            .outerjoin(LedgerEntry, and_(*join_on))
            .where(Account.organization_id == organization_id)
            .group_by(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                Account.is_group,
                Account.is_active,
                Account.parent_id,
            )
            .order_by(Account.code)
        )

        if account_type is not None:
            query = query.where(Account.account_type == AccountType(account_type).value)

        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                or_(
                    func.lower(Account.code).like(pattern),
                    func.lower(Account.name).like(pattern),
                )
            )

        return [
            AccountBalanceRow(
                account_id=row.id,
                account_code=row.code,
                account_name=row.name,
                account_type=AccountType(row.account_type),
                is_group=row.is_group,
                is_active=row.is_active,
                debit_total=to_money(row.debit_total),
                credit_total=to_money(row.credit_total),
                entry_count=row.entry_count,
                parent_id=row.parent_id,
            )
            for row in self.session.execute(query).all()
        ]

    def party_totals(
        self,
        organization_id: UUID,
        customer_id: UUID | None = None,
        supplier_id: UUID | None = None,
        as_of_date: date | None = None,
    ) -> PartyTotals:
        """Sum entries tagged with exactly one of customer_id or supplier_id."""
        if (customer_id is None) == (supplier_id is None):
            raise ValueError("Exactly one of customer_id or supplier_id is required")

        filters = self._entry_filters(organization_id, None, as_of_date, None)
        if customer_id is not None:
            filters.append(LedgerEntry.customer_id == customer_id)
        else:
            filters.append(LedgerEntry.supplier_id == supplier_id)

        row = self.session.execute(
            select(
                func.sum(LedgerEntry.debit).label("debit_total"),
                func.sum(LedgerEntry.credit).label("credit_total"),
                func.count(LedgerEntry.id).label("entry_count"),
            ).where(*filters)
        ).one()

        return PartyTotals(
            debit_total=to_money(row.debit_total),
            credit_total=to_money(row.credit_total),
            entry_count=row.entry_count,
        )
