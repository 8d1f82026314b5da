"""
Configuration Schema (``ledger_config.schema``).

Frozen dataclasses describing a ledger deployment: database connection,
chart of accounts, statement defaults and backfill defaults.  Instances
are built by ``ledger_config.loader``; nothing here performs I/O.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from ledger_kernel.domain.chart import AccountDefinition, AccountRole, ChartOfAccounts

__all__ = [
    "AccountDefinition",
    "AccountRole",
    "BackfillDefaults",
    "ChartOfAccounts",
    "DatabaseConfig",
    "LedgerConfig",
    "StatementDefaults",
]

DEFAULT_DATABASE_URL = "sqlite:///ledger.db"


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30

    def __post_init__(self):
        if not self.url:
            raise ValueError("database url must not be empty")
        if self.pool_size < 1:
            raise ValueError("pool_size must be at least 1")

    @property
    def redacted_url(self) -> str:
        """URL with any password masked, for logs."""
        scheme, sep, rest = self.url.partition("://")
        if "@" not in rest:
            return self.url
        credentials, host = rest.rsplit("@", 1)
        user = credentials.split(":", 1)[0]
        return f"{scheme}{sep}{user}:***@{host}"


@dataclass(frozen=True)
class StatementDefaults:
    # None disables the bound
    query_timeout_seconds: float | None = 30.0
    raise_on_unbalanced: bool = True

    def __post_init__(self):
        if self.query_timeout_seconds is not None and self.query_timeout_seconds <= 0:
            raise ValueError("query_timeout_seconds must be positive or null")


@dataclass(frozen=True)
class BackfillDefaults:
    stop_on_error: bool = False


@dataclass(frozen=True)
class LedgerConfig:
    """Aggregate configuration for one deployment."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    chart: ChartOfAccounts = field(default_factory=ChartOfAccounts.standard)
    statements: StatementDefaults = field(default_factory=StatementDefaults)
    backfill: BackfillDefaults = field(default_factory=BackfillDefaults)

    def to_dict(self) -> dict:
        return {
            "database": dataclasses.asdict(self.database),
            "chart": {
                role.value: {
                    "code": definition.code,
                    "name": definition.name,
                    "type": definition.account_type.value,
                }
                for role, definition in sorted(
                    self.chart.accounts.items(), key=lambda item: item[0].value
                )
            },
            "statements": dataclasses.asdict(self.statements),
            "backfill": dataclasses.asdict(self.backfill),
        }

    def checksum(self) -> str:
        from ledger_config.loader import compute_checksum

        return compute_checksum(self.to_dict())
