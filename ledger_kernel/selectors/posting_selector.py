"""
Module: ledger_kernel.selectors.posting_selector
Responsibility: Read-only lookups of posting groups by source document, and
    the integrity scan that finds groups whose entries do not balance.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - get_group() is the idempotency read used before posting; the UNIQUE
      constraint on posting_groups remains the authority under races.

Failure modes:
    - unbalanced_groups() returning anything means posted data was altered
      out of band or a write path bypassed LedgerPoster.  Groups are written
      in one SAVEPOINT, so a partial group is not reachable through the
      kernel.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.models.account import Account
from ledger_kernel.models.ledger import LedgerEntry, PostingGroup, ReferenceType
from ledger_kernel.selectors.base import BaseSelector, to_money


@dataclass(frozen=True)
class PostedGroup:
    """Header of a posted group."""

    id: UUID
    organization_id: UUID
    branch_id: UUID | None
    reference_type: ReferenceType
    reference_id: UUID
    effective_date: date
    total_amount: Decimal
    entry_count: int
    source: str
    posted_at: datetime


@dataclass(frozen=True)
class PostedEntry:
    """One posted line with its account code, for audit traces."""

    line_seq: int
    account_id: UUID
    account_code: str
    entry_date: date
    debit: Decimal
    credit: Decimal
    branch_id: UUID | None
    customer_id: UUID | None
    supplier_id: UUID | None
    memo: str | None


@dataclass(frozen=True)
class UnbalancedGroup:
    """A posted group that fails the double-entry checks."""

    posting_group_id: UUID
    reference_type: ReferenceType
    reference_id: UUID
    debit_total: Decimal
    credit_total: Decimal
    expected_entry_count: int
    actual_entry_count: int

    @property
    def diff(self) -> Decimal:
        return self.debit_total - self.credit_total


class PostingSelector(BaseSelector[PostingGroup]):
    """Lookups keyed by (reference_type, reference_id)."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_group(
        self,
        reference_type: ReferenceType,
        reference_id: UUID,
    ) -> PostedGroup | None:
        group = self.session.execute(
            select(PostingGroup).where(
                PostingGroup.reference_type == ReferenceType(reference_type).value,
                PostingGroup.reference_id == reference_id,
            )
        ).scalar_one_or_none()
        if group is None:
            return None
        return PostedGroup(
            id=group.id,
            organization_id=group.organization_id,
            branch_id=group.branch_id,
            reference_type=ReferenceType(group.reference_type),
            reference_id=group.reference_id,
            effective_date=group.effective_date,
            total_amount=to_money(group.total_amount),
            entry_count=group.entry_count,
            source=group.source,
            posted_at=group.posted_at,
        )

    def is_posted(self, reference_type: ReferenceType, reference_id: UUID) -> bool:
        found = self.session.execute(
            select(PostingGroup.id).where(
                PostingGroup.reference_type == ReferenceType(reference_type).value,
                PostingGroup.reference_id == reference_id,
            )
        ).first()
        return found is not None

    def entries_for(
        self,
        reference_type: ReferenceType,
        reference_id: UUID,
    ) -> list[PostedEntry]:
        """Entries of one source document's group, in line order."""
        rows = self.session.execute(
            select(LedgerEntry, Account.code)
            .join(Account, LedgerEntry.account_id == Account.id)
            .where(
                LedgerEntry.reference_type == ReferenceType(reference_type).value,
                LedgerEntry.reference_id == reference_id,
            )
            .order_by(LedgerEntry.line_seq)
        ).all()

        return [
            PostedEntry(
                line_seq=entry.line_seq,
                account_id=entry.account_id,
                account_code=code,
                entry_date=entry.entry_date,
                debit=to_money(entry.debit),
                credit=to_money(entry.credit),
                branch_id=entry.branch_id,
                customer_id=entry.customer_id,
                supplier_id=entry.supplier_id,
                memo=entry.memo,
            )
            for entry, code in rows
        ]

    def count_groups(self, organization_id: UUID) -> int:
        return self.session.execute(
            select(func.count(PostingGroup.id)).where(
                PostingGroup.organization_id == organization_id
            )
        ).scalar_one()

    def count_entries(self, organization_id: UUID) -> int:
        return self.session.execute(
            select(func.count(LedgerEntry.id)).where(
                LedgerEntry.organization_id == organization_id
            )
        ).scalar_one()

    def unbalanced_groups(self, organization_id: UUID) -> list[UnbalancedGroup]:
        """
        Scan an organization's groups for broken double-entry laws.

        A group is reported when its debits and credits differ, or when
        the number of entries found differs from the count recorded on
        the header (a partial write).
        """
        query = (
            select(
                PostingGroup.id,
                PostingGroup.reference_type,
                PostingGroup.reference_id,
                PostingGroup.entry_count,
                func.sum(LedgerEntry.debit).label("debit_total"),
                func.sum(LedgerEntry.credit).label("credit_total"),
                func.count(LedgerEntry.id).label("actual_count"),
            )
            .outerjoin(LedgerEntry, LedgerEntry.posting_group_id == PostingGroup.id)
            .where(PostingGroup.organization_id == organization_id)
            .group_by(
                PostingGroup.id,
                PostingGroup.reference_type,
                PostingGroup.reference_id,
                PostingGroup.entry_count,
            )
            .order_by(PostingGroup.reference_type, PostingGroup.reference_id)
        )

        found = []
        for row in self.session.execute(query).all():
            debit_total = to_money(row.debit_total)
            credit_total = to_money(row.credit_total)
            if debit_total != credit_total or row.actual_count != row.entry_count:
                found.append(
                    UnbalancedGroup(
                        posting_group_id=row.id,
                        reference_type=ReferenceType(row.reference_type),
                        reference_id=row.reference_id,
                        debit_total=debit_total,
                        credit_total=credit_total,
                        expected_entry_count=row.entry_count,
                        actual_entry_count=row.actual_count,
                    )
                )
        return found
