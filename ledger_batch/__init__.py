"""Batch drivers for the ledger: historical backfill."""

from ledger_batch.backfill import BackfillCoordinator, BackfillResult
from ledger_batch.sources import (
    DocumentSource,
    InMemoryDocumentSource,
    YamlDocumentSource,
)

__all__ = [
    "BackfillCoordinator",
    "BackfillResult",
    "DocumentSource",
    "InMemoryDocumentSource",
    "YamlDocumentSource",
]
