"""
Statement Service (``ledger_reporting.service``).

Responsibility
--------------
Derives Profit & Loss, Balance Sheet and Trial Balance on demand from
posted ledger entries, plus account and party balance listings and the
integrity scan.  Bridges ``LedgerSelector`` / ``PostingSelector`` to the
pure builders in ``statements.py``.  Read-only.

Architecture position
---------------------
**Reporting layer**.  Constructor: ``session`` + ``clock`` + ``config``.

Invariants enforced
-------------------
* Read-only -- no mutations to accounts, groups or entries.
* Every statement is bounded by a timeout (caller-supplied or configured
  default).  On PostgreSQL the bound is also pushed to the server as
  ``SET LOCAL statement_timeout``; on every backend the elapsed time on
  the injected clock is checked after each aggregation query.
* Trial balance diff is zero.  A nonzero diff is logged at CRITICAL and
  raised as ``LedgerIntegrityError`` (unless configured otherwise); it is
  never returned silently.

Failure modes
-------------
* ``ConfigurationError`` -- organization_id missing.
* ``ValueError`` -- end_date before start_date, or non-positive timeout.
* ``QueryTimeout`` -- time bound exceeded; retry with a narrower range.
* ``LedgerIntegrityError`` -- trial balance out of balance, or unbalanced
  groups found by ``verify_integrity``.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    ConfigurationError,
    LedgerIntegrityError,
    QueryTimeout,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import AccountType
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.posting_selector import PostingSelector, UnbalancedGroup

from ledger_reporting.config import ReportingConfig
from ledger_reporting.models import (
    AccountBalancesReport,
    AccountHierarchyReport,
    BalanceSheetReport,
    PartyBalanceReport,
    PartyType,
    ProfitAndLossReport,
    ReportMetadata,
    ReportPeriod,
    ReportType,
    TrialBalanceReport,
)
from ledger_reporting.statements import (
    BALANCE_SHEET_TYPES,
    PROFIT_AND_LOSS_TYPES,
    build_account_balances,
    build_account_hierarchy,
    build_balance_sheet,
    build_party_balance,
    build_profit_and_loss,
    build_trial_balance,
)

logger = get_logger("reporting.service")

# SQLSTATE query_canceled, raised when statement_timeout fires
_PG_QUERY_CANCELED = "57014"


class _Deadline:
    """Elapsed-time bound for one statement, measured on the injected clock."""

    def __init__(self, statement: str, seconds: float, clock: Clock):
        self.statement = statement
        self.seconds = seconds
        self._clock = clock
        self._started = clock.now()

    def check(self) -> None:
        elapsed = (self._clock.now() - self._started).total_seconds()
        if elapsed > self.seconds:
            logger.warning(
                "statement_query_timeout",
                extra={
                    "statement": self.statement,
                    "timeout_seconds": self.seconds,
                    "elapsed_seconds": round(elapsed, 3),
                },
            )
            raise QueryTimeout(self.statement, self.seconds)


class StatementService:
    """
    On-demand statement derivation.

    Contract
    --------
    * Every public method returns a frozen report DTO.
    * Statements see whatever fully committed posting groups exist when
      their queries run; groups are never partially visible.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._ledger = LedgerSelector(session)
        self._postings = PostingSelector(session)

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _metadata(self, report_type: ReportType, organization_id: UUID, **kwargs) -> ReportMetadata:
        return ReportMetadata(
            report_type=report_type,
            organization_id=organization_id,
            generated_at=self._clock.now().isoformat(),
            **kwargs,
        )

    @staticmethod
    def _require_organization(organization_id: UUID | None) -> None:
        if organization_id is None:
            raise ConfigurationError("Missing organization context", field="organization_id")

    def _is_postgres(self) -> bool:
        return self._session.get_bind().dialect.name == "postgresql"

    @contextmanager
    def _bounded(self, statement: str, timeout: float | None) -> Iterator[_Deadline | None]:
        seconds = self._config.default_timeout_seconds if timeout is None else timeout
        if seconds is None:
            yield None
            return
        if seconds <= 0:
            raise ValueError("timeout must be positive")

        deadline = _Deadline(statement, seconds, self._clock)
        server_side = self._is_postgres()
        if server_side:
            self._session.execute(
                text(f"SET LOCAL statement_timeout = {max(1, int(seconds * 1000))}")
            )
        try:
            yield deadline
        except OperationalError as exc:
            if getattr(exc.orig, "pgcode", None) == _PG_QUERY_CANCELED:
                self._session.rollback()
                logger.warning(
                    "statement_query_timeout",
                    extra={"statement": statement, "timeout_seconds": seconds},
                )
                raise QueryTimeout(statement, seconds) from exc
            raise
        except QueryTimeout:
            if server_side:
                self._reset_server_timeout()
            raise
        if server_side:
            self._reset_server_timeout()

    def _reset_server_timeout(self) -> None:
        self._session.execute(text("SET LOCAL statement_timeout TO DEFAULT"))

    @staticmethod
    def _check(deadline: _Deadline | None) -> None:
        if deadline is not None:
            deadline.check()

    # =========================================================================
    # Profit and Loss
    # =========================================================================

    def compute_profit_and_loss(
        self,
        organization_id: UUID,
        start_date: date | None,
        end_date: date,
        branch_id: UUID | None = None,
        timeout: float | None = None,
    ) -> ProfitAndLossReport:
        """
        Income and expenses over [start_date, end_date].

        A None start_date gives life-to-date figures.
        """
        self._require_organization(organization_id)
        if start_date is not None and end_date < start_date:
            raise ValueError(f"end_date {end_date} is before start_date {start_date}")

        with LogContext.bind(organization_id=str(organization_id)):
            with self._bounded("profit_and_loss", timeout) as deadline:
                report = self._profit_and_loss(
                    organization_id, start_date, end_date, branch_id, deadline
                )
            logger.info(
                "profit_and_loss_generated",
                extra={
                    "start_date": start_date,
                    "end_date": end_date,
                    "branch_id": branch_id,
                    "net_profit": report.net_profit,
                },
            )
            return report

    def _profit_and_loss(
        self,
        organization_id: UUID,
        start_date: date | None,
        end_date: date,
        branch_id: UUID | None,
        deadline: _Deadline | None,
    ) -> ProfitAndLossReport:
        totals = self._ledger.type_totals(
            organization_id,
            PROFIT_AND_LOSS_TYPES,
            start_date=start_date,
            end_date=end_date,
            branch_id=branch_id,
        )
        self._check(deadline)
        return build_profit_and_loss(
            self._metadata(
                ReportType.PROFIT_AND_LOSS,
                organization_id,
                branch_id=branch_id,
                period_start=start_date,
                period_end=end_date,
            ),
            ReportPeriod(start_date=start_date, end_date=end_date),
            totals,
        )

    # =========================================================================
    # Balance Sheet
    # =========================================================================

    def compute_balance_sheet(
        self,
        organization_id: UUID,
        as_of_date: date,
        branch_id: UUID | None = None,
        timeout: float | None = None,
    ) -> BalanceSheetReport:
        """Cumulative position at as_of_date, with life-to-date retained earnings."""
        self._require_organization(organization_id)

        with LogContext.bind(organization_id=str(organization_id)):
            with self._bounded("balance_sheet", timeout) as deadline:
                totals = self._ledger.type_totals(
                    organization_id,
                    BALANCE_SHEET_TYPES,
                    end_date=as_of_date,
                    branch_id=branch_id,
                )
                self._check(deadline)
                retained = self._profit_and_loss(
                    organization_id, None, as_of_date, branch_id, deadline
                ).net_profit

            report = build_balance_sheet(
                self._metadata(
                    ReportType.BALANCE_SHEET,
                    organization_id,
                    branch_id=branch_id,
                    as_of_date=as_of_date,
                ),
                as_of_date,
                totals,
                retained,
            )
            logger.info(
                "balance_sheet_generated",
                extra={
                    "as_of_date": as_of_date,
                    "branch_id": branch_id,
                    "is_balanced": report.is_balanced,
                },
            )
            return report

    # =========================================================================
    # Trial Balance
    # =========================================================================

    def compute_trial_balance(
        self,
        organization_id: UUID,
        as_of_date: date,
        branch_id: UUID | None = None,
        timeout: float | None = None,
    ) -> TrialBalanceReport:
        """Per-account totals with a diff that must be zero."""
        self._require_organization(organization_id)

        with LogContext.bind(organization_id=str(organization_id)):
            with self._bounded("trial_balance", timeout) as deadline:
                rows = self._ledger.trial_balance(
                    organization_id, as_of_date=as_of_date, branch_id=branch_id
                )
                self._check(deadline)

            report = build_trial_balance(
                self._metadata(
                    ReportType.TRIAL_BALANCE,
                    organization_id,
                    branch_id=branch_id,
                    as_of_date=as_of_date,
                ),
                rows,
            )

            if report.totals.diff != Decimal("0"):
                logger.critical(
                    "trial_balance_out_of_balance",
                    extra={
                        "as_of_date": as_of_date,
                        "branch_id": branch_id,
                        "total_debit": report.totals.debit,
                        "total_credit": report.totals.credit,
                        "diff": report.totals.diff,
                    },
                )
                if self._config.raise_on_unbalanced:
                    raise LedgerIntegrityError(
                        str(organization_id),
                        "trial balance debits and credits differ",
                        diff=str(report.totals.diff),
                    )

            logger.info(
                "trial_balance_generated",
                extra={"as_of_date": as_of_date, "row_count": len(report.rows)},
            )
            return report

    # =========================================================================
    # Listings
    # =========================================================================

    def account_balances(
        self,
        organization_id: UUID,
        as_of_date: date | None = None,
        account_type: AccountType | None = None,
        search: str | None = None,
        timeout: float | None = None,
    ) -> AccountBalancesReport:
        """Every account of the organization with its balance, ordered by code."""
        self._require_organization(organization_id)
        with self._bounded("account_balances", timeout) as deadline:
            rows = self._ledger.account_balances(
                organization_id,
                as_of_date=as_of_date,
                account_type=account_type,
                search=search,
            )
            self._check(deadline)
        return build_account_balances(
            self._metadata(
                ReportType.ACCOUNT_BALANCES, organization_id, as_of_date=as_of_date
            ),
            rows,
        )

    def account_hierarchy(
        self,
        organization_id: UUID,
        as_of_date: date | None = None,
        timeout: float | None = None,
    ) -> AccountHierarchyReport:
        """
        The chart as a tree of group and ledger accounts.

        Each node's totals include its descendants, so a group account
        shows the combined balance of everything beneath it.
        """
        self._require_organization(organization_id)
        with self._bounded("account_hierarchy", timeout) as deadline:
            rows = self._ledger.account_balances(organization_id, as_of_date=as_of_date)
            self._check(deadline)
        return build_account_hierarchy(
            self._metadata(
                ReportType.ACCOUNT_HIERARCHY, organization_id, as_of_date=as_of_date
            ),
            rows,
        )

    def party_balance(
        self,
        organization_id: UUID,
        customer_id: UUID | None = None,
        supplier_id: UUID | None = None,
        as_of_date: date | None = None,
        timeout: float | None = None,
    ) -> PartyBalanceReport:
        """Outstanding receivable for a customer, or payable to a supplier."""
        self._require_organization(organization_id)
        if (customer_id is None) == (supplier_id is None):
            raise ValueError("Exactly one of customer_id or supplier_id is required")

        with self._bounded("party_balance", timeout) as deadline:
            totals = self._ledger.party_totals(
                organization_id,
                customer_id=customer_id,
                supplier_id=supplier_id,
                as_of_date=as_of_date,
            )
            self._check(deadline)

        if customer_id is not None:
            party_type, party_id = PartyType.CUSTOMER, customer_id
        else:
            party_type, party_id = PartyType.SUPPLIER, supplier_id
        return build_party_balance(
            self._metadata(ReportType.PARTY_BALANCE, organization_id, as_of_date=as_of_date),
            party_type,
            party_id,
            totals,
        )

    # =========================================================================
    # Integrity
    # =========================================================================

    def verify_integrity(self, organization_id: UUID) -> int:
        """
        Scan every posting group of the organization.

        Returns:
            Number of groups checked.

        Raises:
            LedgerIntegrityError: At least one group is unbalanced or
                has a different entry count than its header records.
        """
        self._require_organization(organization_id)
        broken: list[UnbalancedGroup] = self._postings.unbalanced_groups(organization_id)
        checked = self._postings.count_groups(organization_id)

        if broken:
            logger.critical(
                "ledger_integrity_violation",
                extra={
                    "organization_id": str(organization_id),
                    "broken_groups": [
                        f"{g.reference_type.value}:{g.reference_id}" for g in broken
                    ],
                },
            )
            raise LedgerIntegrityError(
                str(organization_id),
                f"{len(broken)} posting group(s) fail the double-entry checks",
                diff=str(sum((g.diff for g in broken), Decimal("0"))),
            )

        logger.info(
            "ledger_integrity_verified",
            extra={"organization_id": str(organization_id), "groups_checked": checked},
        )
        return checked
