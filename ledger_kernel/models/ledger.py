"""
Module: ledger_kernel.models.ledger
Responsibility: ORM persistence for posting groups and ledger entries -- the
    single source of financial truth in this system.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Idempotency: at most one PostingGroup per (reference_type,
      reference_id), enforced by UNIQUE constraint uq_posting_group_reference.
      The group header is the anchor row; a concurrent duplicate insert
      fails at the database and is treated as "already posted".
    - Single-sided entries: CHECK constraints require debit >= 0,
      credit >= 0 and exactly one of them strictly positive.
    - Balance per group: checked by LedgerPoster before the write; the
      integrity scan in PostingSelector verifies it read-side.
    - Immutability: ORM listeners in db/immutability.py reject UPDATE and
      DELETE on both tables.

Failure modes:
    - IntegrityError on duplicate (reference_type, reference_id).
    - IntegrityError on an entry violating the amount CHECK constraints.
    - ImmutabilityViolationError on UPDATE/DELETE.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class ReferenceType(str, Enum):
    """Kind of source document a posting group was derived from."""

    INVOICE = "invoice"
    PURCHASE = "purchase"
    PAYMENT = "payment"


class PostingSource(str, Enum):
    """Which path wrote the group.  Audit metadata only."""

    LIVE = "live"
    BACKFILL = "backfill"


class PostingGroup(TrackedBase):
    """
    Header row for the balanced set of entries derived from one source document.

    Contract:
        Exactly one PostingGroup exists per (reference_type, reference_id)
        for the lifetime of the system.  Header and entries are inserted in
        one SAVEPOINT so readers never observe a partial group.
    """

    __tablename__ = "posting_groups"

    __table_args__ = (
        UniqueConstraint(
            "reference_type", "reference_id", name="uq_posting_group_reference"
        ),
        Index("idx_posting_group_org_date", "organization_id", "effective_date"),
        CheckConstraint("total_amount >= 0", name="ck_posting_group_total"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    branch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reference_type: Mapped[ReferenceType] = mapped_column(String(20), nullable=False)

    reference_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Sum of the debit side (equal to the credit side)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    entry_count: Mapped[int] = mapped_column(Integer, nullable=False)

    posted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    source: Mapped[PostingSource] = mapped_column(
        String(20),
        default=PostingSource.LIVE,
        nullable=False,
    )

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="group",
        order_by="LedgerEntry.line_seq",
    )

    def __repr__(self) -> str:
        return f"<PostingGroup {self.reference_type}:{self.reference_id}>"


class LedgerEntry(TrackedBase):
    """
    One single-sided ledger line.

    Contract:
        Exactly one of debit/credit is strictly positive.  Entries are
        immutable once written; corrections are new groups.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        Index(
            "idx_ledger_entry_org_account_date",
            "organization_id",
            "account_id",
            "entry_date",
        ),
        Index("idx_ledger_entry_reference", "reference_type", "reference_id"),
        Index("idx_ledger_entry_org_customer", "organization_id", "customer_id"),
        Index("idx_ledger_entry_org_supplier", "organization_id", "supplier_id"),
        Index("idx_ledger_entry_org_branch", "organization_id", "branch_id"),
        CheckConstraint("debit >= 0", name="ck_ledger_entry_debit_non_negative"),
        CheckConstraint("credit >= 0", name="ck_ledger_entry_credit_non_negative"),
        CheckConstraint(
            "(debit > 0 AND credit = 0) OR (credit > 0 AND debit = 0)",
            name="ck_ledger_entry_single_sided",
        ),
    )

    posting_group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("posting_groups.id"),
        nullable=False,
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    branch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    reference_type: Mapped[ReferenceType] = mapped_column(String(20), nullable=False)

    reference_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Sub-ledger links
    customer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    supplier_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Position within the group, for deterministic ordering
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    memo: Mapped[str | None] = mapped_column(String(255), nullable=True)

    group: Mapped["PostingGroup"] = relationship(back_populates="entries")

    account: Mapped["Account"] = relationship(back_populates="entries")

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.reference_type}:{self.reference_id} "
            f"#{self.line_seq} Dr {self.debit} Cr {self.credit}>"
        )
