"""Read-only query selectors for the ledger kernel."""

from ledger_kernel.selectors.ledger_selector import (
    AccountBalanceRow,
    LedgerSelector,
    PartyTotals,
    TrialBalanceRow,
    TypeTotals,
)
from ledger_kernel.selectors.posting_selector import (
    PostedEntry,
    PostedGroup,
    PostingSelector,
    UnbalancedGroup,
)

__all__ = [
    "AccountBalanceRow",
    "LedgerSelector",
    "PartyTotals",
    "PostedEntry",
    "PostedGroup",
    "PostingSelector",
    "TrialBalanceRow",
    "TypeTotals",
    "UnbalancedGroup",
]
