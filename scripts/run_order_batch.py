#!/usr/bin/env python3
"""
Operator CLI for the order batch pipeline.

Commands:
  run       Run the order processing job once, now.  Exit code 0 when the
            execution COMPLETED, 1 otherwise (including a rejected launch).
  schedule  Fire the job on the configured schedule until interrupted.
  init-db   Create the orders table and the execution-tracking tables.

Usage:
  python3 scripts/run_order_batch.py [--config FILE] [--database-url URL] run \
      [--mode FAST|NORMAL|CAREFUL] [--min-amount N] \
      [--start-date YYYY-MM-DD] [--end-date YYYY-MM-DD]
  python3 scripts/run_order_batch.py schedule
  python3 scripts/run_order_batch.py init-db
"""

import argparse
import sys
import threading
from dataclasses import replace
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from order_kernel.exceptions import OrderBatchError  # noqa: E402
from order_kernel.logging_config import configure_logging, get_logger  # noqa: E402

logger = get_logger("cli")


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO date: {value!r}") from None


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Scheduled processing of pending orders")
    p.add_argument("--config", type=Path, default=None, help="Settings YAML (default: packaged order_batch.yaml)")
    p.add_argument("--database-url", default=None, help="Database URL (overrides settings and ORDER_BATCH_DATABASE_URL)")

    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the job once now")
    run.add_argument("--mode", default=None, help="Processing mode: FAST, NORMAL or CAREFUL")
    run.add_argument("--min-amount", type=int, default=None, help="Minimum order amount")
    run.add_argument("--start-date", type=_iso_date, default=None, help="Window start (inclusive)")
    run.add_argument("--end-date", type=_iso_date, default=None, help="Window end (inclusive)")

    sub.add_parser("schedule", help="Run the scheduler until interrupted")
    sub.add_parser("init-db", help="Create tables")
    return p


def _load_settings(args: argparse.Namespace):
    from order_config import get_settings

    settings = get_settings(args.config)
    if args.database_url:
        settings = replace(settings, database=replace(settings.database, url=args.database_url))
    return settings


def _cmd_run(args: argparse.Namespace, orchestrator) -> int:
    parameters = orchestrator.build_parameters(
        orchestrator.clock.now(),
        start_date=args.start_date,
        end_date=args.end_date,
        min_amount=args.min_amount,
        processing_mode=args.mode,
    )
    execution = orchestrator.run_once(parameters)

    print(f"  Job execution {execution.job_execution_id}: {execution.status.value.upper()}")
    for step in execution.step_executions:
        print(
            f"    {step.step_name:<22} {step.status.value:<10} "
            f"read={step.read_count} filtered={step.filter_count} "
            f"written={step.write_count} commits={step.commit_count}"
        )
    if execution.exit_message:
        print(f"  {execution.exit_message}")
    return 0 if execution.succeeded else 1


def _cmd_schedule(orchestrator) -> int:
    scheduler = orchestrator.create_scheduler()
    scheduler.start()
    print("  Scheduler running. Press Ctrl+C to stop.")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        print("  Stopping scheduler...")
    finally:
        scheduler.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = _load_settings(args)
    except (OrderBatchError, FileNotFoundError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    configure_logging(level=settings.logging.level)

    from order_batch.orchestrator import BatchOrchestrator
    from order_kernel.db.engine import create_tables

    try:
        orchestrator = BatchOrchestrator.from_settings(settings)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    if args.command == "init-db":
        create_tables(orchestrator.engine)
        print("  Tables created.")
        return 0

    if args.command == "schedule":
        return _cmd_schedule(orchestrator)

    try:
        return _cmd_run(args, orchestrator)
    except OrderBatchError as exc:
        logger.error("run_rejected", extra={"error_code": exc.code, "error": str(exc)})
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    except SQLAlchemyError as exc:
        logger.error("run_database_error", exc_info=True)
        print(f"  ERROR: database unavailable: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
