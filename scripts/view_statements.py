#!/usr/bin/env python3
"""
Print Profit & Loss, Balance Sheet and Trial Balance for one organization
as JSON.

Usage:
    python3 scripts/view_statements.py --organization <uuid> [options]

Examples:
    # Year to date, as of today
    python3 scripts/view_statements.py --organization 6f1c... --start 2025-01-01

    # One branch, with a 5 second bound per statement
    python3 scripts/view_statements.py --organization 6f1c... --branch 91aa... \\
        --start 2025-01-01 --end 2025-03-31 --timeout 5
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Print ledger statements for one organization as JSON.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--organization", required=True, type=UUID, help="Organization UUID.")
    parser.add_argument("--branch", type=UUID, default=None, help="Optional branch UUID filter.")
    parser.add_argument(
        "--start",
        type=lambda s: date.fromisoformat(s),
        default=None,
        help="P&L period start (YYYY-MM-DD). Default: life-to-date.",
    )
    parser.add_argument(
        "--end",
        type=lambda s: date.fromisoformat(s),
        default=None,
        help="P&L period end and balance sheet / trial balance date. Default: today.",
    )
    parser.add_argument(
        "--statement",
        choices=("all", "pnl", "balance-sheet", "trial-balance"),
        default="all",
    )
    parser.add_argument("--timeout", type=float, default=None, help="Seconds per statement.")
    parser.add_argument("--config", type=Path, default=None, help="Ledger config YAML.")
    parser.add_argument("--db-url", default=None, help="Database URL override.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    end = args.end or date.today()

    from ledger_config import load_config
    from ledger_kernel.db.engine import get_session, init_engine_from_url
    from ledger_kernel.exceptions import LedgerKernelError
    from ledger_reporting import ReportingConfig, StatementService, render_to_dict

    config = load_config(args.config)
    init_engine_from_url(args.db_url or config.database.url, echo=config.database.echo)

    session = get_session()
    try:
        service = StatementService(
            session,
            config=ReportingConfig.from_statement_defaults(config.statements),
        )
        output = {}
        if args.statement in ("all", "pnl"):
            output["profit_and_loss"] = render_to_dict(
                service.compute_profit_and_loss(
                    args.organization, args.start, end, args.branch, timeout=args.timeout
                )
            )
        if args.statement in ("all", "balance-sheet"):
            output["balance_sheet"] = render_to_dict(
                service.compute_balance_sheet(
                    args.organization, end, args.branch, timeout=args.timeout
                )
            )
        if args.statement in ("all", "trial-balance"):
            output["trial_balance"] = render_to_dict(
                service.compute_trial_balance(
                    args.organization, end, args.branch, timeout=args.timeout
                )
            )
    except LedgerKernelError as exc:
        print(json.dumps({"error": exc.code, "message": str(exc)}), file=sys.stderr)
        return 1
    finally:
        session.close()

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
