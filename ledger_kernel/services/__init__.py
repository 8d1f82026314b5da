"""Kernel services: account resolution and posting."""

from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.ledger_poster import (
    LedgerPoster,
    PostingResult,
    PostingStatus,
)

__all__ = [
    "AccountRegistry",
    "LedgerPoster",
    "PostingResult",
    "PostingStatus",
]
