"""
BackfillCoordinator -- posts historical documents that predate the ledger.

Contract:
    For one organization, walks invoices, then purchases, then payments
    from a DocumentSource and posts every document that has no posting
    group yet, through LedgerPoster.  Entries are identical to the live
    path; only the group header's ``source`` column says ``backfill``.

Architecture: ledger_batch.  A batch client of the kernel poster, never a
    second write path.

Invariants enforced:
    - Re-runnable: a document with a posting group is reported as
      ALREADY_POSTED and not posted again, so a second pass over the same
      input writes nothing.
    - Per-document isolation: each document commits (or rolls back) on its
      own, so a crash or failure never leaves a partial group and earlier
      documents stay posted.
    - Automated (linked-installment) payments and payments that are not
      completed are skipped.
    - Cancellation is checked between documents only; a group is never
      abandoned half-way.

Failure modes:
    - A document that fails to post is recorded as FAILED with its error
      and the run continues (or stops, with ``stop_on_error=True``).
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ledger_kernel.domain.chart import ChartOfAccounts
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.events import PaymentEvent, PaymentStatus, SourceEvent
from ledger_kernel.exceptions import ConfigurationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.ledger import PostingSource, ReferenceType
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.ledger_poster import (
    LedgerPoster,
    PostingResult,
    PostingStatus,
)

from ledger_batch.sources import DocumentSource

logger = get_logger("batch.backfill")


@dataclass(frozen=True)
class BackfillResult:
    """Outcome of one backfill run."""

    batch_id: UUID
    organization_id: UUID
    started_at: datetime
    completed_at: datetime
    results: tuple[PostingResult, ...] = ()
    cancelled: bool = False
    stopped_on_error: bool = False

    def count(self, status: PostingStatus, reference_type: ReferenceType | None = None) -> int:
        return sum(
            1
            for r in self.results
            if r.status == status
            and (reference_type is None or r.reference_type == reference_type)
        )

    @property
    def posted(self) -> int:
        return self.count(PostingStatus.POSTED)

    @property
    def already_posted(self) -> int:
        return self.count(PostingStatus.ALREADY_POSTED)

    @property
    def skipped(self) -> int:
        return self.count(PostingStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(PostingStatus.FAILED)

    @property
    def is_complete(self) -> bool:
        """True when the run covered every document without failures."""
        return not self.cancelled and not self.stopped_on_error and self.failed == 0


@dataclass
class _RunState:
    results: list[PostingResult] = field(default_factory=list)
    cancelled: bool = False
    stopped_on_error: bool = False


class BackfillCoordinator:
    """
    Offline driver posting an organization's historical documents.

    Contract:
        ``run()`` may be called any number of times; only the first
        successful pass writes.  ``cancel()`` is safe to call from another
        thread and takes effect before the next document.

    Non-goals:
        - Does NOT repair or re-post documents that already have a group.
    """

    def __init__(
        self,
        session: Session,
        source: DocumentSource,
        clock: Clock | None = None,
        chart: ChartOfAccounts | None = None,
        stop_on_error: bool = False,
        cancel_event: threading.Event | None = None,
    ):
        self._session = session
        self._source = source
        self._clock = clock or SystemClock()
        self._stop_on_error = stop_on_error
        self._cancel = cancel_event or threading.Event()
        self._poster = LedgerPoster(
            session,
            registry=AccountRegistry(session, chart),
            clock=self._clock,
            auto_commit=True,
            source=PostingSource.BACKFILL,
        )

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(self, organization_id: UUID) -> BackfillResult:
        if organization_id is None:
            raise ConfigurationError("Missing organization context", field="organization_id")

        batch_id = uuid4()
        started_at = self._clock.now()
        t0 = time.monotonic()
        state = _RunState()

        with LogContext.bind(batch_id=str(batch_id), organization_id=str(organization_id)):
            logger.info("backfill_started")

            # Invoices and purchases first so their accounts exist before payments
            passes = (
                (ReferenceType.INVOICE, self._source.invoices),
                (ReferenceType.PURCHASE, self._source.purchases),
                (ReferenceType.PAYMENT, self._source.payments),
            )
            for reference_type, load in passes:
                documents = sorted(load(organization_id), key=lambda d: (d.date, str(d.id)))
                if not self._run_pass(reference_type, documents, state):
                    break

            completed_at = self._clock.now()
            result = BackfillResult(
                batch_id=batch_id,
                organization_id=organization_id,
                started_at=started_at,
                completed_at=completed_at,
                results=tuple(state.results),
                cancelled=state.cancelled,
                stopped_on_error=state.stopped_on_error,
            )
            logger.info(
                "backfill_completed",
                extra={
                    "posted": result.posted,
                    "already_posted": result.already_posted,
                    "skipped": result.skipped,
                    "failed": result.failed,
                    "cancelled": result.cancelled,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return result

    def _run_pass(
        self,
        reference_type: ReferenceType,
        documents: list[SourceEvent],
        state: _RunState,
    ) -> bool:
        """Process one document kind.  Returns False when the run must stop."""
        for document in documents:
            if self._cancel.is_set():
                state.cancelled = True
                logger.warning(
                    "backfill_cancelled",
                    extra={
                        "processed": len(state.results),
                        "next_reference_type": reference_type.value,
                    },
                )
                return False

            result = self._backfill_one(document)
            state.results.append(result)

            if result.status == PostingStatus.FAILED and self._stop_on_error:
                state.stopped_on_error = True
                return False
        return True

    def _backfill_one(self, document: SourceEvent) -> PostingResult:
        reference_type = document.reference_type

        if isinstance(document, PaymentEvent):
            if document.is_automated:
                return PostingResult.skipped(
                    reference_type, document.id, "automated payment posts through its own path"
                )
            if document.status != PaymentStatus.COMPLETED:
                return PostingResult.skipped(
                    reference_type, document.id, f"payment status is {document.status.value}"
                )

        try:
            if self._poster.is_posted(reference_type, document.id):
                # End the read transaction before moving on
                self._session.commit()
                return PostingResult.already_posted(reference_type, document.id, None)
            return self._poster.post(document)
        except Exception as exc:
            self._session.rollback()
            logger.error(
                "backfill_document_failed",
                extra={
                    "document_type": reference_type.value,
                    "document_id": str(document.id),
                    "error_code": getattr(exc, "code", None),
                },
                exc_info=True,
            )
            return PostingResult.failed(reference_type, document.id, f"{type(exc).__name__}: {exc}")
