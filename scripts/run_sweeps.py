#!/usr/bin/env python3
"""
Run the scheduled economy sweeps once: maintenance, then maturity.

Usage:
    python scripts/run_sweeps.py --database-url postgresql://... [--config economy.yaml]
    python scripts/run_sweeps.py --only maturity

Both sweeps are idempotent, so the job runner may retry or overlap runs
freely.  Prints a JSON summary on stdout; exits 1 if any position failed.
"""

import argparse
import json
import os
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from economy_config import get_active_config
from economy_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from economy_kernel.logging_config import configure_logging
from economy_kernel.services.economy_engine import EconomyEngine

DB_URL_ENV = "ECONOMY_DATABASE_URL"


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the maintenance and maturity sweeps once.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--database-url",
        default=os.environ.get(DB_URL_ENV),
        help=f"SQLAlchemy database URL (default: ${DB_URL_ENV}).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Economy YAML config (default: $ECONOMY_CONFIG or packaged defaults).",
    )
    parser.add_argument(
        "--only",
        choices=("maintenance", "maturity"),
        default=None,
        help="Run a single sweep.",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before sweeping (local runs).",
    )
    return parser.parse_args(argv)


def _summarize(result) -> dict:
    if not result.is_success:
        return {"status": result.status.value, "error": result.error_code}
    report = result.value
    return {
        "status": result.status.value,
        "processed": len(report.processed),
        "skipped": [str(p) for p in report.skipped],
        "failed": [{"position_id": str(p), "error": code} for p, code in report.failed],
    }


def run_sweeps(engine: EconomyEngine, only: str | None = None) -> dict:
    """Run the requested sweeps and return a JSON-ready summary."""
    summary = {}
    if only in (None, "maintenance"):
        summary["maintenance"] = _summarize(engine.run_maintenance())
    if only in (None, "maturity"):
        summary["maturity"] = _summarize(engine.run_maturity_sweep())
    return summary


def main(argv=None) -> int:
    args = _parse_args(argv)
    if not args.database_url:
        print(f"Error: --database-url or ${DB_URL_ENV} is required", file=sys.stderr)
        return 2

    configure_logging()
    config = get_active_config(args.config)
    init_engine_from_url(args.database_url)
    if args.create_tables:
        create_tables()

    engine = EconomyEngine(get_session_factory(), config=config)
    engine.ensure_house_account()
    summary = run_sweeps(engine, args.only)
    print(json.dumps(summary, indent=2, sort_keys=True))

    failed = any(
        section.get("failed") or section["status"] != "success"
        for section in summary.values()
    )
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
