"""
Statement Domain Models (``ledger_reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for statement outputs: profit and loss,
balance sheet, trial balance, account balance listings, the account tree and party
(customer/supplier) balances.

Architecture position
---------------------
**Reporting layer** -- pure data definitions with ZERO I/O.  Built by the
functions in ``statements.py`` and returned by ``StatementService``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields are ``Decimal`` quantized to cents.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ReportType(str, Enum):
    """Types of statements."""

    PROFIT_AND_LOSS = "profit_and_loss"
    BALANCE_SHEET = "balance_sheet"
    TRIAL_BALANCE = "trial_balance"
    ACCOUNT_BALANCES = "account_balances"
    ACCOUNT_HIERARCHY = "account_hierarchy"
    PARTY_BALANCE = "party_balance"


class PartyType(str, Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every statement."""

    report_type: ReportType
    organization_id: UUID
    generated_at: str  # ISO format timestamp from injected clock
    branch_id: UUID | None = None
    as_of_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None


# =========================================================================
# Profit and Loss
# =========================================================================


@dataclass(frozen=True)
class ReportPeriod:
    """Date window of a P&L; a None start means life-to-date."""

    start_date: date | None
    end_date: date


@dataclass(frozen=True)
class ProfitAndLossReport:
    metadata: ReportMetadata
    period: ReportPeriod
    income: Decimal
    expenses: Decimal
    net_profit: Decimal


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Cumulative position at a date.

    ``equity`` already includes ``retained_earnings`` (life-to-date net
    profit), so ``assets == liabilities + equity`` holds for a balanced
    ledger.
    """

    metadata: ReportMetadata
    as_of_date: date
    assets: Decimal
    liabilities: Decimal
    equity: Decimal
    retained_earnings: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.assets == self.liabilities + self.equity


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceLine:
    """A single account row in the trial balance."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class TrialBalanceTotals:
    debit: Decimal
    credit: Decimal
    diff: Decimal  # debit - credit, zero for a sound ledger


@dataclass(frozen=True)
class TrialBalanceReport:
    metadata: ReportMetadata
    rows: tuple[TrialBalanceLine, ...]
    totals: TrialBalanceTotals

    @property
    def is_balanced(self) -> bool:
        return self.totals.diff == Decimal("0")


# =========================================================================
# Account and party balances
# =========================================================================


@dataclass(frozen=True)
class AccountBalanceLine:
    """
    Balance of one account.

    ``balance`` is debit - credit; ``normalized_balance`` is positive when
    the account sits on its normal side (sign flipped for liability,
    equity and income accounts).
    """

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    is_group: bool
    is_active: bool
    debit: Decimal
    credit: Decimal
    balance: Decimal
    normalized_balance: Decimal
    entry_count: int


@dataclass(frozen=True)
class AccountBalancesReport:
    metadata: ReportMetadata
    lines: tuple[AccountBalanceLine, ...]


@dataclass(frozen=True)
class AccountNode:
    """
    One account in the chart tree.

    ``debit``, ``credit`` and ``normalized_balance`` roll up the account's own
    entries and those of every descendant.
    """

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    is_group: bool
    is_active: bool
    debit: Decimal
    credit: Decimal
    normalized_balance: Decimal
    children: tuple[AccountNode, ...] = ()


@dataclass(frozen=True)
class AccountHierarchyReport:
    metadata: ReportMetadata
    roots: tuple[AccountNode, ...]


@dataclass(frozen=True)
class PartyBalanceReport:
    """
    Outstanding amount for one customer (receivable) or supplier (payable).

    Positive ``outstanding`` means the customer owes us, or we owe the
    supplier.
    """

    metadata: ReportMetadata
    party_type: PartyType
    party_id: UUID
    debit: Decimal
    credit: Decimal
    outstanding: Decimal
    entry_count: int
