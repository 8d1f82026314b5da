"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a ledger YAML file and parses it into the frozen dataclasses of
``ledger_config.schema``, then applies environment overrides for the
database URL.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with descriptive messages; unknown
  chart roles and account types are rejected, never ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.

Example file::

    database:
      url: postgresql://ledger@localhost/ledger
      pool_size: 10
    chart:
      receivable: {code: "1200", name: Accounts Receivable, type: asset}
    statements:
      query_timeout_seconds: 15
    backfill:
      stop_on_error: false
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType

from ledger_config.schema import (
    AccountDefinition,
    AccountRole,
    BackfillDefaults,
    ChartOfAccounts,
    DatabaseConfig,
    LedgerConfig,
    StatementDefaults,
)

logger = get_logger("config.loader")

# Checked in order; the first one set wins
DATABASE_URL_ENV_VARS = ("LEDGER_DATABASE_URL", "DATABASE_URL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _section(data: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a mapping")
    return value


def _known(section: str, data: Mapping[str, Any], cls) -> dict[str, Any]:
    allowed = {f for f in cls.__dataclass_fields__}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"Unknown keys in config section '{section}': {unknown}")
    return dict(data)


def parse_chart(data: Mapping[str, Any]) -> ChartOfAccounts:
    """Overlay configured roles onto the standard chart."""
    accounts = dict(ChartOfAccounts.standard().accounts)
    for role_name, spec in data.items():
        try:
            role = AccountRole(role_name)
        except ValueError:
            raise ValueError(f"Unknown chart role: {role_name!r}") from None
        if not isinstance(spec, dict):
            raise ValueError(f"Chart role '{role_name}' must be a mapping")
        base = accounts[role]
        type_name = spec.get("type", base.account_type.value)
        try:
            account_type = AccountType(type_name)
        except ValueError:
            raise ValueError(
                f"Invalid account type {type_name!r} for chart role '{role_name}'"
            ) from None
        accounts[role] = AccountDefinition(
            code=str(spec.get("code", base.code)),
            name=str(spec.get("name", base.name)),
            account_type=account_type,
        )
    return ChartOfAccounts(accounts=accounts)


def parse_config(data: Mapping[str, Any]) -> LedgerConfig:
    return LedgerConfig(
        database=DatabaseConfig(
            **_known("database", _section(data, "database"), DatabaseConfig)
        ),
        chart=parse_chart(_section(data, "chart")),
        statements=StatementDefaults(
            **_known("statements", _section(data, "statements"), StatementDefaults)
        ),
        backfill=BackfillDefaults(
            **_known("backfill", _section(data, "backfill"), BackfillDefaults)
        ),
    )


def apply_environment(config: LedgerConfig, environ: Mapping[str, str] | None = None) -> LedgerConfig:
    env = os.environ if environ is None else environ
    for name in DATABASE_URL_ENV_VARS:
        url = env.get(name)
        if url:
            return LedgerConfig(
                database=DatabaseConfig(
                    url=url,
                    echo=config.database.echo,
                    pool_size=config.database.pool_size,
                    max_overflow=config.database.max_overflow,
                    pool_timeout=config.database.pool_timeout,
                ),
                chart=config.chart,
                statements=config.statements,
                backfill=config.backfill,
            )
    return config


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerConfig:
    """
    Load configuration from a YAML file (optional) plus environment.

    With no path the built-in defaults are used.
    """
    data = load_yaml_file(Path(path)) if path is not None else {}
    config = apply_environment(parse_config(data), environ)
    logger.info(
        "ledger_config_loaded",
        extra={
            "path": str(path) if path is not None else None,
            "database_url": config.database.redacted_url,
            "checksum": config.checksum(),
        },
    )
    return config


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
