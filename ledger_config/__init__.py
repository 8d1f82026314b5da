"""
Ledger configuration.

``load_config()`` is the single entry point: it reads an optional YAML file
and environment overrides and returns a frozen ``LedgerConfig``.
"""

from ledger_config.loader import compute_checksum, load_config
from ledger_config.schema import (
    AccountDefinition,
    AccountRole,
    BackfillDefaults,
    ChartOfAccounts,
    DatabaseConfig,
    LedgerConfig,
    StatementDefaults,
)

__all__ = [
    "AccountDefinition",
    "AccountRole",
    "BackfillDefaults",
    "ChartOfAccounts",
    "DatabaseConfig",
    "LedgerConfig",
    "StatementDefaults",
    "compute_checksum",
    "load_config",
]
