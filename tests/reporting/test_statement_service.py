"""
Tests for StatementService against a real database.

Statements are derived on demand from posted entries; each test builds a
small ledger and checks the derived figures.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.clock import SequentialClock
from ledger_kernel.domain.events import PaymentDirection, PaymentMethod
from ledger_kernel.exceptions import ConfigurationError, LedgerIntegrityError, QueryTimeout
from ledger_kernel.models.account import Account, AccountType
from ledger_reporting.config import ReportingConfig
from ledger_reporting.models import PartyType, ReportType
from ledger_reporting.service import StatementService

JAN_31 = date(2024, 1, 31)
T0 = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def customer_id():
    return uuid4()


@pytest.fixture
def supplier_id():
    return uuid4()


@pytest.fixture
def trading_month(poster, make_invoice, make_purchase, make_payment, customer_id, supplier_id):
    """
    January: buy stock, sell with tax, collect part in cash, pay part by bank.

        purchase  5000.00            Dr Inventory   / Cr Payable
        invoice   1180.00 (180 tax)  Dr Receivable  / Cr Sales, Tax
        payment    500.00 cash in    Dr Cash        / Cr Receivable
        payment    300.00 bank out   Dr Payable     / Cr Bank
    """
    poster.post_purchase(make_purchase("5000.00", on=date(2024, 1, 10), supplier_id=supplier_id))
    poster.post_invoice(make_invoice("1180.00", "180.00", on=date(2024, 1, 15), customer_id=customer_id))
    poster.post_payment(
        make_payment("500.00", PaymentDirection.INFLOW, PaymentMethod.CASH,
                     on=date(2024, 1, 20), customer_id=customer_id)
    )
    poster.post_payment(
        make_payment("300.00", PaymentDirection.OUTFLOW, PaymentMethod.BANK,
                     on=date(2024, 1, 25), supplier_id=supplier_id)
    )


class TestProfitAndLoss:

    def test_income_minus_expenses(self, statements, account, write_group, organization_id):
        cash = account(organization_id, "1001", "Cash", AccountType.ASSET)
        sales = account(organization_id, "4000", "Sales", AccountType.INCOME)
        rent = account(organization_id, "6100", "Rent", AccountType.EXPENSE)
        write_group(organization_id, date(2024, 1, 5), [(cash, "10000", 0), (sales, 0, "10000")])
        write_group(organization_id, date(2024, 1, 6), [(rent, "6000", 0), (cash, 0, "6000")])

        report = statements.compute_profit_and_loss(organization_id, date(2024, 1, 1), JAN_31)

        assert report.income == Decimal("10000.00")
        assert report.expenses == Decimal("6000.00")
        assert report.net_profit == Decimal("4000.00")

    def test_from_posted_documents(self, statements, trading_month, organization_id):
        report = statements.compute_profit_and_loss(organization_id, date(2024, 1, 1), JAN_31)

        assert report.income == Decimal("1000.00")
        assert report.expenses == Decimal("0.00")
        assert report.net_profit == Decimal("1000.00")

    def test_period_window(self, poster, statements, make_invoice, organization_id):
        poster.post_invoice(make_invoice("118.00", "18.00", on=date(2024, 1, 31)))
        poster.post_invoice(make_invoice("236.00", "36.00", on=date(2024, 2, 1)))

        january = statements.compute_profit_and_loss(organization_id, date(2024, 1, 1), JAN_31)
        february = statements.compute_profit_and_loss(organization_id, date(2024, 2, 1), date(2024, 2, 29))
        life_to_date = statements.compute_profit_and_loss(organization_id, None, date(2024, 2, 29))

        assert january.income == Decimal("100.00")
        assert february.income == Decimal("200.00")
        assert life_to_date.income == Decimal("300.00")
        assert life_to_date.period.start_date is None

    def test_branch_filter(self, poster, statements, make_invoice, organization_id):
        north, south = uuid4(), uuid4()
        poster.post_invoice(make_invoice("1180.00", "180.00", branch_id=north))
        poster.post_invoice(make_invoice("118.00", "18.00", branch_id=south))

        assert statements.compute_profit_and_loss(
            organization_id, None, JAN_31, branch_id=north
        ).income == Decimal("1000.00")
        assert statements.compute_profit_and_loss(
            organization_id, None, JAN_31, branch_id=south
        ).income == Decimal("100.00")
        assert statements.compute_profit_and_loss(
            organization_id, None, JAN_31
        ).income == Decimal("1100.00")

    def test_organizations_isolated(self, poster, statements, make_invoice, organization_id, other_organization_id):
        poster.post_invoice(make_invoice(organization_id=other_organization_id))

        report = statements.compute_profit_and_loss(organization_id, None, JAN_31)

        assert report.income == Decimal("0.00")
        assert report.net_profit == Decimal("0.00")

    def test_metadata(self, statements, organization_id, deterministic_clock):
        report = statements.compute_profit_and_loss(organization_id, date(2024, 1, 1), JAN_31)

        assert report.metadata.report_type == ReportType.PROFIT_AND_LOSS
        assert report.metadata.organization_id == organization_id
        assert report.metadata.generated_at == deterministic_clock.now().isoformat()
        assert report.metadata.period_start == date(2024, 1, 1)
        assert report.metadata.period_end == JAN_31

    def test_end_before_start(self, statements, organization_id):
        with pytest.raises(ValueError):
            statements.compute_profit_and_loss(organization_id, date(2024, 2, 1), JAN_31)

    def test_missing_organization(self, statements):
        with pytest.raises(ConfigurationError):
            statements.compute_profit_and_loss(None, None, JAN_31)

    def test_generation_logged(self, statements, organization_id, captured_logs):
        statements.compute_profit_and_loss(organization_id, None, JAN_31)

        generated = [r for r in captured_logs() if r["message"] == "profit_and_loss_generated"]
        assert generated[0]["organization_id"] == str(organization_id)
        assert generated[0]["net_profit"] == "0.00"


class TestBalanceSheet:

    def test_accounting_identity(self, statements, trading_month, organization_id):
        report = statements.compute_balance_sheet(organization_id, JAN_31)

        # Receivable 680 + Inventory 5000 + Cash 500 - Bank 300
        assert report.assets == Decimal("5880.00")
        # Tax 180 + Payable 4700
        assert report.liabilities == Decimal("4880.00")
        assert report.retained_earnings == Decimal("1000.00")
        assert report.equity == Decimal("1000.00")
        assert report.is_balanced
        assert report.assets == report.liabilities + report.equity

    def test_equity_accounts_included(self, statements, account, write_group, organization_id):
        cash = account(organization_id, "1001", "Cash", AccountType.ASSET)
        capital = account(organization_id, "3000", "Owner Capital", AccountType.EQUITY)
        write_group(organization_id, date(2024, 1, 2), [(cash, "2500", 0), (capital, 0, "2500")])

        report = statements.compute_balance_sheet(organization_id, JAN_31)

        assert report.assets == Decimal("2500.00")
        assert report.equity == Decimal("2500.00")
        assert report.retained_earnings == Decimal("0.00")
        assert report.is_balanced

    def test_as_of_excludes_later_entries(self, poster, statements, make_invoice, organization_id):
        poster.post_invoice(make_invoice("118.00", "18.00", on=date(2024, 1, 15)))
        poster.post_invoice(make_invoice("1180.00", "180.00", on=date(2024, 2, 15)))

        january = statements.compute_balance_sheet(organization_id, JAN_31)
        february = statements.compute_balance_sheet(organization_id, date(2024, 2, 29))

        assert january.assets == Decimal("118.00")
        assert january.retained_earnings == Decimal("100.00")
        assert february.assets == Decimal("1298.00")
        assert january.is_balanced and february.is_balanced

    def test_empty_ledger(self, statements, organization_id):
        report = statements.compute_balance_sheet(organization_id, JAN_31)

        assert report.assets == report.liabilities == report.equity == Decimal("0.00")
        assert report.is_balanced


class TestTrialBalance:

    def test_rows_and_totals(self, statements, trading_month, organization_id):
        report = statements.compute_trial_balance(organization_id, JAN_31)

        assert [(r.account_code, r.debit, r.credit) for r in report.rows] == [
            ("1001", Decimal("500.00"), Decimal("0.00")),
            ("1002", Decimal("0.00"), Decimal("300.00")),
            ("1200", Decimal("1180.00"), Decimal("500.00")),
            ("1500", Decimal("5000.00"), Decimal("0.00")),
            ("2000", Decimal("300.00"), Decimal("5000.00")),
            ("2100", Decimal("0.00"), Decimal("180.00")),
            ("4000", Decimal("0.00"), Decimal("1000.00")),
        ]
        assert report.totals.debit == Decimal("6980.00")
        assert report.totals.credit == Decimal("6980.00")
        assert report.totals.diff == Decimal("0.00")
        assert report.is_balanced

    def test_out_of_balance_raises_alarm(
        self, statements, account, write_group, organization_id, captured_logs
    ):
        cash = account(organization_id, "1001", "Cash", AccountType.ASSET)
        sales = account(organization_id, "4000", "Sales", AccountType.INCOME)
        write_group(organization_id, date(2024, 1, 5), [(cash, "100", 0), (sales, 0, "90")])

        with pytest.raises(LedgerIntegrityError) as exc_info:
            statements.compute_trial_balance(organization_id, JAN_31)

        assert exc_info.value.code == "LEDGER_INTEGRITY_ALARM"
        assert exc_info.value.diff == "10.00"
        alarms = [r for r in captured_logs() if r["message"] == "trial_balance_out_of_balance"]
        assert alarms[0]["level"] == "CRITICAL"
        assert alarms[0]["diff"] == "10.00"

    def test_out_of_balance_returned_when_configured(
        self, session, deterministic_clock, account, write_group, organization_id
    ):
        cash = account(organization_id, "1001", "Cash", AccountType.ASSET)
        sales = account(organization_id, "4000", "Sales", AccountType.INCOME)
        write_group(organization_id, date(2024, 1, 5), [(cash, "100", 0), (sales, 0, "90")])
        service = StatementService(
            session,
            clock=deterministic_clock,
            config=ReportingConfig(raise_on_unbalanced=False),
        )

        report = service.compute_trial_balance(organization_id, JAN_31)

        assert not report.is_balanced
        assert report.totals.diff == Decimal("10.00")

    def test_branch_filter(self, poster, statements, make_invoice, organization_id):
        north = uuid4()
        poster.post_invoice(make_invoice("1180.00", "180.00", branch_id=north))
        poster.post_invoice(make_invoice("118.00", "18.00"))

        report = statements.compute_trial_balance(organization_id, JAN_31, branch_id=north)

        assert report.totals.debit == Decimal("1180.00")
        assert report.is_balanced


class TestTimeout:

    def _service(self, session, times, **config):
        return StatementService(
            session,
            clock=SequentialClock(times),
            config=ReportingConfig(**config),
        )

    def test_exceeded_bound_raises(self, session, organization_id, captured_logs):
        service = self._service(session, [T0, T0 + timedelta(seconds=10)])

        with pytest.raises(QueryTimeout) as exc_info:
            service.compute_profit_and_loss(organization_id, None, JAN_31, timeout=5)

        assert exc_info.value.code == "QUERY_TIMEOUT"
        assert exc_info.value.timeout_seconds == 5
        assert any(r["message"] == "statement_query_timeout" for r in captured_logs())

    def test_within_bound(self, session, organization_id):
        service = self._service(session, [T0, T0 + timedelta(seconds=1)])

        report = service.compute_trial_balance(organization_id, JAN_31, timeout=5)

        assert report.is_balanced

    def test_default_bound_from_config(self, session, organization_id):
        service = self._service(
            session, [T0, T0 + timedelta(seconds=3)], default_timeout_seconds=2
        )

        with pytest.raises(QueryTimeout):
            service.compute_balance_sheet(organization_id, JAN_31)

    def test_unbounded_when_configured(self, session, organization_id):
        service = self._service(
            session, [T0, T0 + timedelta(hours=1)], default_timeout_seconds=None
        )

        assert service.compute_balance_sheet(organization_id, JAN_31).is_balanced

    def test_non_positive_timeout_rejected(self, statements, organization_id):
        with pytest.raises(ValueError):
            statements.compute_trial_balance(organization_id, JAN_31, timeout=0)

    def test_non_positive_default_rejected(self):
        with pytest.raises(ValueError):
            ReportingConfig(default_timeout_seconds=-1)


class TestAccountBalances:

    def test_lists_every_account(self, session, poster, registry, statements, make_invoice, organization_id):
        registry.ensure_chart(organization_id)
        session.commit()
        poster.post_invoice(make_invoice("1180.00", "180.00"))

        report = statements.account_balances(organization_id)
        by_code = {line.account_code: line for line in report.lines}

        assert [line.account_code for line in report.lines] == sorted(by_code)
        assert len(report.lines) == 7
        assert by_code["1002"].entry_count == 0
        assert by_code["1002"].balance == Decimal("0.00")
        assert by_code["2100"].balance == Decimal("-180.00")
        assert by_code["2100"].normalized_balance == Decimal("180.00")
        assert by_code["1200"].normalized_balance == Decimal("1180.00")

    def test_filters(self, poster, statements, make_invoice, make_purchase, organization_id):
        poster.post_invoice(make_invoice())
        poster.post_purchase(make_purchase())

        liabilities = statements.account_balances(organization_id, account_type=AccountType.LIABILITY)
        tax = statements.account_balances(organization_id, search="TAX")

        assert [line.account_code for line in liabilities.lines] == ["2000", "2100"]
        assert [line.account_code for line in tax.lines] == ["2100"]

    def test_as_of(self, poster, statements, make_invoice, organization_id):
        poster.post_invoice(make_invoice("118.00", "18.00", on=date(2024, 3, 1)))

        report = statements.account_balances(organization_id, as_of_date=JAN_31)

        assert all(line.entry_count == 0 for line in report.lines)
        assert len(report.lines) == 3


class TestAccountHierarchy:

    def test_groups_roll_up_children(
        self, session, poster, registry, statements, make_invoice, make_payment, organization_id
    ):
        registry.ensure_chart(organization_id)
        session.add(
            Account(
                organization_id=organization_id,
                code="1000",
                name="Current Assets",
                account_type=AccountType.ASSET.value,
                is_group=True,
            )
        )
        session.flush()
        for code in ("1001", "1002", "1200"):
            registry.set_parent(organization_id, code, "1000")
        session.commit()
        poster.post_invoice(make_invoice("1180.00", "180.00"))
        poster.post_payment(make_payment("500.00"))

        report = statements.account_hierarchy(organization_id)

        assert report.metadata.report_type == ReportType.ACCOUNT_HIERARCHY
        assert [node.account_code for node in report.roots] == ["1000", "1500", "2000", "2100", "4000"]
        current_assets = report.roots[0]
        assert current_assets.is_group
        assert [node.account_code for node in current_assets.children] == ["1001", "1002", "1200"]
        assert current_assets.debit == Decimal("1680.00")
        assert current_assets.credit == Decimal("500.00")
        assert current_assets.normalized_balance == Decimal("1180.00")
        assert report.roots[-1].normalized_balance == Decimal("1000.00")

    def test_as_of(self, poster, statements, make_invoice, organization_id):
        poster.post_invoice(make_invoice("118.00", "18.00", on=date(2024, 3, 1)))

        report = statements.account_hierarchy(organization_id, as_of_date=JAN_31)

        assert len(report.roots) == 3
        assert all(node.debit == node.credit == Decimal("0.00") for node in report.roots)

    def test_missing_organization(self, statements):
        with pytest.raises(ConfigurationError):
            statements.account_hierarchy(None)


class TestPartyBalance:

    def test_customer_outstanding(self, statements, trading_month, organization_id, customer_id):
        report = statements.party_balance(organization_id, customer_id=customer_id)

        assert report.party_type == PartyType.CUSTOMER
        assert report.debit == Decimal("1180.00")
        assert report.credit == Decimal("500.00")
        assert report.outstanding == Decimal("680.00")
        assert report.entry_count == 2

    def test_supplier_outstanding(self, statements, trading_month, organization_id, supplier_id):
        report = statements.party_balance(organization_id, supplier_id=supplier_id)

        assert report.party_type == PartyType.SUPPLIER
        assert report.outstanding == Decimal("4700.00")

    def test_requires_exactly_one_party(self, statements, organization_id):
        with pytest.raises(ValueError):
            statements.party_balance(organization_id)
        with pytest.raises(ValueError):
            statements.party_balance(organization_id, customer_id=uuid4(), supplier_id=uuid4())


class TestVerifyIntegrity:

    def test_sound_ledger(self, statements, trading_month, organization_id, captured_logs):
        assert statements.verify_integrity(organization_id) == 4
        assert any(r["message"] == "ledger_integrity_verified" for r in captured_logs())

    def test_unbalanced_group_detected(self, statements, account, write_group, organization_id, captured_logs):
        cash = account(organization_id, "1001", "Cash", AccountType.ASSET)
        sales = account(organization_id, "4000", "Sales", AccountType.INCOME)
        write_group(organization_id, date(2024, 1, 5), [(cash, "100", 0), (sales, 0, "90")])

        with pytest.raises(LedgerIntegrityError):
            statements.verify_integrity(organization_id)

        violations = [r for r in captured_logs() if r["message"] == "ledger_integrity_violation"]
        assert violations[0]["level"] == "CRITICAL"

    def test_partial_group_detected(self, statements, account, write_group, organization_id):
        cash = account(organization_id, "1001", "Cash", AccountType.ASSET)
        sales = account(organization_id, "4000", "Sales", AccountType.INCOME)
        # Balanced, but the header promises a third line that never landed
        write_group(
            organization_id,
            date(2024, 1, 5),
            [(cash, "100", 0), (sales, 0, "100")],
            entry_count=3,
        )

        with pytest.raises(LedgerIntegrityError):
            statements.verify_integrity(organization_id)
