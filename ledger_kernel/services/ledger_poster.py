"""
LedgerPoster -- exactly-once, all-or-nothing posting of source documents.

Responsibility:
    Turns one invoice, purchase or payment event into a balanced posting
    group and persists it exactly once per (reference_type, reference_id).

Architecture position:
    Kernel > Services.  The only write path for posting groups and ledger
    entries; BackfillCoordinator posts through this class as well, so live
    and backfilled groups carry identical entries.

Posting pipeline (one call):

    1. Event record already validated on construction (ConfigurationError)
    2. Existing group for the reference?            -> ALREADY_POSTED
    3. Automated payment?                           -> SKIPPED
    4. Posting rule computes lines (pure)
    5. validate_group: single-sided + balanced      -> InvariantViolation
    6. Resolve accounts via AccountRegistry         -> AccountResolutionError
    7. SAVEPOINT: insert header (anchor), entries, flush
       IntegrityError on uq_posting_group_reference -> ALREADY_POSTED
    8. Commit (auto_commit=True)

Invariants enforced:
    - Nothing is written when validation or account resolution fails.
    - Header and entries land in one SAVEPOINT inside one transaction;
      readers at READ COMMITTED see the whole group or none of it.
    - A concurrent duplicate loses on the UNIQUE constraint and is
      reported as ALREADY_POSTED, never as an error.

Failure modes:
    - ConfigurationError, InvariantViolation, AccountResolutionError and
      storage errors propagate after rollback (auto_commit=True).
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.chart import AccountRole
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.events import (
    InvoiceEvent,
    PaymentEvent,
    PurchaseEvent,
    SourceEvent,
)
from ledger_kernel.domain.posting_rules import (
    EntrySpec,
    PostingRuleRegistry,
    validate_group,
)
from ledger_kernel.exceptions import (
    ConfigurationError,
    IdempotencyConflict,
    LedgerKernelError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.ledger import (
    LedgerEntry,
    PostingGroup,
    PostingSource,
    ReferenceType,
)
from ledger_kernel.selectors.posting_selector import PostedGroup, PostingSelector
from ledger_kernel.services.account_registry import AccountRegistry

logger = get_logger("services.ledger_poster")


class PostingStatus(str, Enum):
    """Outcome of one posting call."""

    POSTED = "posted"
    ALREADY_POSTED = "already_posted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class PostingResult:
    """Tagged outcome: Posted | AlreadyPosted | Skipped | Failed(reason)."""

    status: PostingStatus
    reference_type: ReferenceType
    reference_id: UUID
    posting_group_id: UUID | None = None
    entry_count: int = 0
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status != PostingStatus.FAILED

    @classmethod
    def posted(cls, reference_type, reference_id, group_id, entry_count) -> PostingResult:
        return cls(PostingStatus.POSTED, reference_type, reference_id, group_id, entry_count)

    @classmethod
    def already_posted(cls, reference_type, reference_id, group: PostedGroup | None) -> PostingResult:
        return cls(
            PostingStatus.ALREADY_POSTED,
            reference_type,
            reference_id,
            group.id if group else None,
            group.entry_count if group else 0,
        )

    @classmethod
    def skipped(cls, reference_type, reference_id, message: str) -> PostingResult:
        return cls(PostingStatus.SKIPPED, reference_type, reference_id, message=message)

    @classmethod
    def failed(cls, reference_type, reference_id, message: str) -> PostingResult:
        return cls(PostingStatus.FAILED, reference_type, reference_id, message=message)


class LedgerPoster:
    """
    Posting entry points for the three source document kinds.

    Contract:
        ``post_invoice``, ``post_purchase`` and ``post_payment`` are each
        idempotent and atomic per reference id.  With ``auto_commit=True``
        (default) every call commits on success and rolls back on failure;
        with ``auto_commit=False`` the caller owns the transaction.

    Guarantees:
        - At most one posting group per source document, enforced by the
          database.
        - Groups are balanced and every entry is single-sided.
    """

    def __init__(
        self,
        session: Session,
        registry: AccountRegistry | None = None,
        clock: Clock | None = None,
        rules: PostingRuleRegistry | None = None,
        auto_commit: bool = True,
        source: PostingSource = PostingSource.LIVE,
    ):
        if registry is not None and registry.session is not session:
            raise ValueError("AccountRegistry must share the poster's session")
        self._session = session
        self._registry = registry or AccountRegistry(session)
        self._clock = clock or SystemClock()
        self._rules = rules or PostingRuleRegistry.default()
        self._auto_commit = auto_commit
        self._source = PostingSource(source)
        self._postings = PostingSelector(session)

    @property
    def registry(self) -> AccountRegistry:
        return self._registry

    # =========================================================================
    # Entry points
    # =========================================================================

    def post_invoice(self, invoice: InvoiceEvent) -> PostingResult:
        return self._post(invoice)

    def post_purchase(self, purchase: PurchaseEvent) -> PostingResult:
        return self._post(purchase)

    def post_payment(self, payment: PaymentEvent) -> PostingResult:
        return self._post(payment)

    def post(self, event: SourceEvent) -> PostingResult:
        """Dispatch any source event to its entry point."""
        if isinstance(event, InvoiceEvent):
            return self.post_invoice(event)
        if isinstance(event, PurchaseEvent):
            return self.post_purchase(event)
        if isinstance(event, PaymentEvent):
            return self.post_payment(event)
        raise ConfigurationError(
            f"Unsupported source event type: {type(event).__name__}", field="event"
        )

    def is_posted(self, reference_type: ReferenceType, reference_id: UUID) -> bool:
        return self._postings.is_posted(reference_type, reference_id)

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _post(self, event: SourceEvent) -> PostingResult:
        reference_type = event.reference_type
        with LogContext.bind(
            correlation_id=str(uuid4()),
            organization_id=str(event.organization_id),
            reference_type=reference_type.value,
            reference_id=str(event.id),
        ):
            t0 = time.monotonic()
            try:
                result = self._do_post(event)
            except IdempotencyConflict:
                if self._auto_commit:
                    self._session.commit()
                result = PostingResult.already_posted(
                    reference_type,
                    event.id,
                    self._postings.get_group(reference_type, event.id),
                )
                logger.info(
                    "idempotency_conflict_absorbed",
                    extra={"posting_group_id": result.posting_group_id},
                )
                return result
            except LedgerKernelError as exc:
                if self._auto_commit:
                    self._session.rollback()
                logger.warning(
                    "posting_rejected",
                    extra={"error_code": exc.code, "reason": str(exc)},
                )
                raise
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.error("posting_failed", exc_info=True)
                raise

            if self._auto_commit:
                self._session.commit()

            if result.status == PostingStatus.POSTED:
                logger.info(
                    "posting_completed",
                    extra={
                        "posting_group_id": result.posting_group_id,
                        "entry_count": result.entry_count,
                        "source": self._source.value,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
            return result

    def _do_post(self, event: SourceEvent) -> PostingResult:
        reference_type = event.reference_type

        existing = self._find_existing(reference_type, event.id)
        if existing is not None:
            logger.info(
                "posting_already_posted",
                extra={"posting_group_id": existing.id},
            )
            return PostingResult.already_posted(reference_type, event.id, existing)

        if isinstance(event, PaymentEvent) and event.is_automated:
            logger.info("posting_skipped_automated")
            return PostingResult.skipped(
                reference_type, event.id, "automated payment posts through its own path"
            )

        lines = self._rules.compute_lines(event)
        if not lines:
            logger.info("posting_skipped_zero_value")
            return PostingResult.skipped(reference_type, event.id, "zero-value document")

        total = validate_group(reference_type, event.id, lines)

        accounts: dict[AccountRole, UUID] = {}
        for line in lines:
            if line.role not in accounts:
                accounts[line.role] = self._registry.resolve_role(
                    event.organization_id, line.role
                )

        group_id = self._write_group(event, lines, accounts, total)
        return PostingResult.posted(reference_type, event.id, group_id, len(lines))

    def _find_existing(
        self,
        reference_type: ReferenceType,
        reference_id: UUID,
    ) -> PostedGroup | None:
        return self._postings.get_group(reference_type, reference_id)

    def _write_group(
        self,
        event: SourceEvent,
        lines: list[EntrySpec],
        accounts: dict[AccountRole, UUID],
        total,
    ) -> UUID:
        reference_type = event.reference_type.value
        savepoint = self._session.begin_nested()
        try:
            group = PostingGroup(
                organization_id=event.organization_id,
                branch_id=event.branch_id,
                reference_type=reference_type,
                reference_id=event.id,
                effective_date=event.date,
                total_amount=total,
                entry_count=len(lines),
                posted_at=self._clock.now(),
                source=self._source.value,
            )
            self._session.add(group)
            # Anchor row first: a duplicate fails here before any entry insert
            self._session.flush()

            for seq, line in enumerate(lines):
                self._session.add(
                    LedgerEntry(
                        posting_group_id=group.id,
                        organization_id=event.organization_id,
                        branch_id=event.branch_id,
                        account_id=accounts[line.role],
                        entry_date=event.date,
                        debit=line.debit,
                        credit=line.credit,
                        reference_type=reference_type,
                        reference_id=event.id,
                        customer_id=line.customer_id,
                        supplier_id=line.supplier_id,
                        line_seq=seq,
                        memo=line.memo,
                    )
                )
            self._session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            if self._postings.is_posted(event.reference_type, event.id):
                raise IdempotencyConflict(reference_type, str(event.id)) from exc
            raise

        return group.id
