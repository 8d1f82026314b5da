"""
Fixtures for statement tests.

``write_group`` inserts a posting group and its entries directly, bypassing
LedgerPoster.  It is how the tests reach accounts no posting rule targets
(expense, equity) and how they plant corrupted groups to prove detection.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.models.account import AccountType
from ledger_kernel.models.ledger import LedgerEntry, PostingGroup, ReferenceType


@pytest.fixture
def write_group(session):
    """
    Insert one group.  ``lines`` is a list of (account_id, debit, credit).

    ``entry_count`` overrides the header count, to simulate a partial write.
    """

    def _write(organization_id, on, lines, branch_id=None, entry_count=None):
        debit_total = sum((Decimal(str(d)) for _, d, _ in lines), Decimal("0"))
        group = PostingGroup(
            organization_id=organization_id,
            branch_id=branch_id,
            reference_type=ReferenceType.INVOICE.value,
            reference_id=uuid4(),
            effective_date=on,
            total_amount=debit_total,
            entry_count=len(lines) if entry_count is None else entry_count,
            posted_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            source="live",
        )
        session.add(group)
        session.flush()
        for seq, (account_id, debit, credit) in enumerate(lines):
            session.add(
                LedgerEntry(
                    posting_group_id=group.id,
                    organization_id=organization_id,
                    branch_id=branch_id,
                    account_id=account_id,
                    entry_date=on,
                    debit=Decimal(str(debit)),
                    credit=Decimal(str(credit)),
                    reference_type=ReferenceType.INVOICE.value,
                    reference_id=group.reference_id,
                    line_seq=seq,
                )
            )
        session.commit()
        return group.id

    return _write


@pytest.fixture
def account(session, registry):
    """Resolve (creating if needed) an account and commit it."""

    def _account(organization_id, code, name, account_type: AccountType):
        account_id = registry.resolve(organization_id, code, name, account_type)
        session.commit()
        return account_id

    return _account
