#!/usr/bin/env python3
"""
Backfill the ledger for one organization from a YAML export of its
historical invoices, purchases and payments.

Safe to re-run: documents that already have a posting group are reported
as already posted and not written again.

Usage:
    python3 scripts/run_backfill.py --organization <uuid> --file export.yaml [options]

Examples:
    # First migration of an organization, creating tables if needed
    python3 scripts/run_backfill.py --organization 6f1c... --file acme.yaml --create-tables

    # Against PostgreSQL, stopping at the first failing document
    LEDGER_DATABASE_URL=postgresql://ledger@localhost/ledger \\
        python3 scripts/run_backfill.py --organization 6f1c... --file acme.yaml --stop-on-error
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
from dataclasses import replace
from pathlib import Path
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Post historical documents for one organization into the ledger.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--organization",
        required=True,
        type=UUID,
        help="Organization UUID to backfill.",
    )
    parser.add_argument(
        "--file",
        required=True,
        type=Path,
        help="YAML export with invoices, purchases and payments.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Ledger config YAML (default: built-in defaults plus environment).",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL (overrides config and environment).",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create ledger tables before running.",
    )
    parser.add_argument(
        "--stop-on-error",
        action="store_true",
        default=None,
        help="Stop at the first document that fails to post.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    source_path = args.file.resolve()
    if not source_path.is_file():
        print(f"ERROR: File not found: {source_path}", file=sys.stderr)
        return 1

    # Lazy imports so we fail fast on args first
    from ledger_batch import BackfillCoordinator, YamlDocumentSource
    from ledger_config import load_config
    from ledger_kernel.db.engine import create_tables, get_session, init_engine_from_config
    from ledger_kernel.exceptions import ConfigurationError
    from ledger_kernel.services.ledger_poster import PostingStatus

    config = load_config(args.config)
    database = config.database
    if args.db_url:
        database = replace(database, url=args.db_url)
    init_engine_from_config(database)
    if args.create_tables:
        create_tables()

    try:
        source = YamlDocumentSource(source_path)
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    stop_on_error = (
        config.backfill.stop_on_error if args.stop_on_error is None else args.stop_on_error
    )

    session = get_session()
    coordinator = BackfillCoordinator(
        session,
        source,
        chart=config.chart,
        stop_on_error=stop_on_error,
    )
    # Ctrl-C finishes the current document, then stops
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: coordinator.cancel())
    try:
        result = coordinator.run(args.organization)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        session.close()

    summary = {
        "batch_id": str(result.batch_id),
        "organization_id": str(result.organization_id),
        "posted": result.posted,
        "already_posted": result.already_posted,
        "skipped": result.skipped,
        "failed": result.failed,
        "cancelled": result.cancelled,
        "failures": [
            {
                "reference_type": r.reference_type.value,
                "reference_id": str(r.reference_id),
                "message": r.message,
            }
            for r in result.results
            if r.status == PostingStatus.FAILED
        ],
    }
    print(json.dumps(summary, indent=2))
    return 0 if result.is_complete else 2


if __name__ == "__main__":
    sys.exit(main())
