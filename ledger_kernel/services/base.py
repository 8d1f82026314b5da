"""
BaseService -- abstract base for kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    services in the kernel layer.  A service receives a SQLAlchemy
    ``Session`` and persists through ``session.flush()`` inside the
    caller's transaction.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Services flush; they do not commit.  The one exception is an
      orchestrating entry point constructed with ``auto_commit=True``
      (LedgerPoster), which owns the transaction of each call it makes.

Failure modes:
    - A subclass that commits mid-operation breaks the all-or-nothing
      guarantee of the caller's unit of work.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT provide read-only query helpers; those belong in
          ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
