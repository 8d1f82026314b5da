"""
Statement Configuration Schema.

Controls the query time bound and how an out-of-balance trial balance is
treated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("reporting.config")


@dataclass(frozen=True)
class ReportingConfig:
    """
    Configuration for StatementService.

    ``default_timeout_seconds`` applies when a caller passes no timeout;
    None means unbounded.  With ``raise_on_unbalanced`` a trial balance
    whose diff is not zero raises LedgerIntegrityError instead of being
    returned.
    """

    default_timeout_seconds: float | None = 30.0
    raise_on_unbalanced: bool = True

    def __post_init__(self):
        if self.default_timeout_seconds is not None and self.default_timeout_seconds <= 0:
            raise ValueError("default_timeout_seconds must be positive or None")

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_statement_defaults(cls, defaults) -> Self:
        """Build from a ``ledger_config.schema.StatementDefaults``."""
        config = cls(
            default_timeout_seconds=defaults.query_timeout_seconds,
            raise_on_unbalanced=defaults.raise_on_unbalanced,
        )
        logger.debug(
            "reporting_config_loaded",
            extra={
                "default_timeout_seconds": config.default_timeout_seconds,
                "raise_on_unbalanced": config.raise_on_unbalanced,
            },
        )
        return config
