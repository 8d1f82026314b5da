"""
True concurrency tests for account resolution and posting.

Each worker thread uses its own session.  Workers line up on a Barrier so
they hit the database at the same moment; the database unique
constraints decide the winner.  On SQLite writers serialize on the
database lock; on PostgreSQL (DATABASE_URL set) they genuinely race.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.ledger import ReferenceType
from ledger_kernel.selectors.posting_selector import PostingSelector
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.ledger_poster import LedgerPoster, PostingStatus

pytestmark = pytest.mark.slow_locks

WORKERS = 8


def _run_concurrently(fn, count=WORKERS):
    barrier = Barrier(count)

    def _worker(index):
        barrier.wait()
        return fn(index)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_worker, range(count)))


class TestConcurrentAccountCreation:

    def test_one_account_per_code(self, session_factory, organization_id):
        def _resolve(index):
            s = session_factory()
            try:
                account_id = AccountRegistry(s).resolve(
                    organization_id, "1200", f"AR from worker {index}", AccountType.ASSET
                )
                s.commit()
                return account_id
            finally:
                s.close()

        ids = _run_concurrently(_resolve)

        assert len(set(ids)) == 1
        check = session_factory()
        count = check.execute(
            select(func.count(Account.id)).where(
                Account.organization_id == organization_id, Account.code == "1200"
            )
        ).scalar_one()
        check.close()
        assert count == 1


class TestConcurrentPosting:

    def test_same_invoice_posts_once(self, session_factory, make_invoice, organization_id):
        invoice = make_invoice()

        def _post(index):
            s = session_factory()
            try:
                return LedgerPoster(s, clock=DeterministicClock()).post_invoice(invoice)
            finally:
                s.close()

        results = _run_concurrently(_post)
        statuses = [r.status for r in results]

        assert statuses.count(PostingStatus.POSTED) == 1
        assert statuses.count(PostingStatus.ALREADY_POSTED) == WORKERS - 1
        assert len({r.posting_group_id for r in results}) == 1

        check = session_factory()
        selector = PostingSelector(check)
        assert selector.count_groups(organization_id) == 1
        assert selector.count_entries(organization_id) == 3
        assert selector.unbalanced_groups(organization_id) == []
        check.close()

    def test_distinct_documents_all_post(self, session_factory, make_payment, organization_id):
        payments = [make_payment() for _ in range(WORKERS)]

        def _post(index):
            s = session_factory()
            try:
                return LedgerPoster(s, clock=DeterministicClock()).post_payment(payments[index])
            finally:
                s.close()

        results = _run_concurrently(_post)

        assert all(r.status == PostingStatus.POSTED for r in results)
        check = session_factory()
        selector = PostingSelector(check)
        assert selector.count_groups(organization_id) == WORKERS
        # Every worker resolved the same two accounts
        account_count = check.execute(
            select(func.count(Account.id)).where(Account.organization_id == organization_id)
        ).scalar_one()
        assert account_count == 2
        check.close()

    def test_new_organizations_in_parallel(self, session_factory, make_invoice):
        organizations = [uuid4() for _ in range(WORKERS)]
        invoices = [make_invoice(organization_id=org) for org in organizations]

        def _post(index):
            s = session_factory()
            try:
                return LedgerPoster(s, clock=DeterministicClock()).post_invoice(invoices[index])
            finally:
                s.close()

        results = _run_concurrently(_post)

        assert all(r.status == PostingStatus.POSTED for r in results)
        check = session_factory()
        selector = PostingSelector(check)
        for invoice in invoices:
            assert selector.is_posted(ReferenceType.INVOICE, invoice.id)
        check.close()
