"""
Pure Statement Transformation Functions (``ledger_reporting.statements``).

Responsibility
--------------
Turns aggregated ledger totals (selector DTOs) into statement DTOs.  Every
function here is deterministic and free of I/O; the service loads the
totals and calls these builders.

Sign conventions
----------------
* Debit-normal (asset, expense): balance = debit - credit.
* Credit-normal (liability, equity, income): balance = credit - debit.
* Net profit = income - expenses.
* Balance sheet equity = equity-account balance + retained earnings,
  where retained earnings is life-to-date net profit.
"""

from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping
from uuid import UUID

from ledger_kernel.models.account import (
    NORMAL_BALANCE_BY_TYPE,
    AccountType,
    NormalBalance,
)
from ledger_kernel.selectors.ledger_selector import (
    AccountBalanceRow,
    PartyTotals,
    TrialBalanceRow,
    TypeTotals,
)

from ledger_reporting.models import (
    AccountBalanceLine,
    AccountBalancesReport,
    AccountHierarchyReport,
    AccountNode,
    BalanceSheetReport,
    PartyBalanceReport,
    PartyType,
    ProfitAndLossReport,
    ReportMetadata,
    ReportPeriod,
    TrialBalanceLine,
    TrialBalanceReport,
    TrialBalanceTotals,
)

ZERO = Decimal("0.00")

PROFIT_AND_LOSS_TYPES = (AccountType.INCOME, AccountType.EXPENSE)
BALANCE_SHEET_TYPES = (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)


def compute_natural_balance(
    debit_total: Decimal,
    credit_total: Decimal,
    normal_balance: NormalBalance,
) -> Decimal:
    """
    Compute balance adjusted for normal balance side.

    Result is positive when the account has its expected normal direction.
    """
    if normal_balance == NormalBalance.DEBIT:
        return debit_total - credit_total
    return credit_total - debit_total


def natural_balance_for_type(
    totals: Mapping[AccountType, TypeTotals],
    account_type: AccountType,
) -> Decimal:
    entry = totals.get(account_type)
    if entry is None:
        return ZERO
    return compute_natural_balance(
        entry.debit_total,
        entry.credit_total,
        NORMAL_BALANCE_BY_TYPE[account_type],
    )


# =========================================================================
# Builders
# =========================================================================


def build_profit_and_loss(
    metadata: ReportMetadata,
    period: ReportPeriod,
    totals: Mapping[AccountType, TypeTotals],
) -> ProfitAndLossReport:
    income = natural_balance_for_type(totals, AccountType.INCOME)
    expenses = natural_balance_for_type(totals, AccountType.EXPENSE)
    return ProfitAndLossReport(
        metadata=metadata,
        period=period,
        income=income,
        expenses=expenses,
        net_profit=income - expenses,
    )


def build_balance_sheet(
    metadata: ReportMetadata,
    as_of_date: date,
    totals: Mapping[AccountType, TypeTotals],
    retained_earnings: Decimal,
) -> BalanceSheetReport:
    equity_accounts = natural_balance_for_type(totals, AccountType.EQUITY)
    return BalanceSheetReport(
        metadata=metadata,
        as_of_date=as_of_date,
        assets=natural_balance_for_type(totals, AccountType.ASSET),
        liabilities=natural_balance_for_type(totals, AccountType.LIABILITY),
        equity=equity_accounts + retained_earnings,
        retained_earnings=retained_earnings,
    )


def build_trial_balance(
    metadata: ReportMetadata,
    rows: Iterable[TrialBalanceRow],
) -> TrialBalanceReport:
    """Rows sorted by account code; totals carry diff = debit - credit."""
    lines = tuple(
        TrialBalanceLine(
            account_id=row.account_id,
            account_code=row.account_code,
            account_name=row.account_name,
            account_type=AccountType(row.account_type).value,
            debit=row.debit_total,
            credit=row.credit_total,
        )
        for row in sorted(rows, key=lambda r: r.account_code)
    )
    total_debit = sum((line.debit for line in lines), ZERO)
    total_credit = sum((line.credit for line in lines), ZERO)
    return TrialBalanceReport(
        metadata=metadata,
        rows=lines,
        totals=TrialBalanceTotals(
            debit=total_debit,
            credit=total_credit,
            diff=total_debit - total_credit,
        ),
    )


def build_account_balances(
    metadata: ReportMetadata,
    rows: Iterable[AccountBalanceRow],
) -> AccountBalancesReport:
    lines = []
    for row in rows:
        account_type = AccountType(row.account_type)
        lines.append(
            AccountBalanceLine(
                account_id=row.account_id,
                account_code=row.account_code,
                account_name=row.account_name,
                account_type=account_type.value,
                is_group=row.is_group,
                is_active=row.is_active,
                debit=row.debit_total,
                credit=row.credit_total,
                balance=row.debit_total - row.credit_total,
                normalized_balance=compute_natural_balance(
                    row.debit_total,
                    row.credit_total,
                    NORMAL_BALANCE_BY_TYPE[account_type],
                ),
                entry_count=row.entry_count,
            )
        )
    return AccountBalancesReport(metadata=metadata, lines=tuple(lines))


def build_account_hierarchy(
    metadata: ReportMetadata,
    rows: Iterable[AccountBalanceRow],
) -> AccountHierarchyReport:
    """
    Nest account rows under their parents, rolling totals up the tree.

    Rows whose parent is not among ``rows`` are placed at the root.
    Siblings keep the input order, which the selector sets to code order.
    """
    rows = list(rows)
    known = {row.account_id for row in rows}
    children: dict[UUID | None, list[AccountBalanceRow]] = {}
    for row in rows:
        parent = row.parent_id if row.parent_id in known else None
        children.setdefault(parent, []).append(row)

    def _node(row: AccountBalanceRow) -> AccountNode:
        kids = tuple(_node(child) for child in children.get(row.account_id, ()))
        debit = row.debit_total + sum((k.debit for k in kids), ZERO)
        credit = row.credit_total + sum((k.credit for k in kids), ZERO)
        account_type = AccountType(row.account_type)
        return AccountNode(
            account_id=row.account_id,
            account_code=row.account_code,
            account_name=row.account_name,
            account_type=account_type.value,
            is_group=row.is_group,
            is_active=row.is_active,
            debit=debit,
            credit=credit,
            normalized_balance=compute_natural_balance(
                debit, credit, NORMAL_BALANCE_BY_TYPE[account_type]
            ),
            children=kids,
        )

    return AccountHierarchyReport(
        metadata=metadata,
        roots=tuple(_node(row) for row in children.get(None, ())),
    )


def build_party_balance(
    metadata: ReportMetadata,
    party_type: PartyType,
    party_id: UUID,
    totals: PartyTotals,
) -> PartyBalanceReport:
    # Customer entries sit on receivable (debit-normal), supplier entries
    # on payable (credit-normal).
    normal = NormalBalance.DEBIT if party_type == PartyType.CUSTOMER else NormalBalance.CREDIT
    return PartyBalanceReport(
        metadata=metadata,
        party_type=party_type,
        party_id=party_id,
        debit=totals.debit_total,
        credit=totals.credit_total,
        outstanding=compute_natural_balance(totals.debit_total, totals.credit_total, normal),
        entry_count=totals.entry_count,
    )


# =========================================================================
# Renderer (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Decimal and UUID become strings, dates ISO strings, enums their value,
    tuples lists.
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
