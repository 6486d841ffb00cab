"""CLI entry point: setup, extract, call, status, task, keygen."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

from scripts.user_role_staging import keygen
from scripts.user_role_staging.config import AppConfig, load_config
from scripts.user_role_staging.db import Warehouse
from scripts.user_role_staging.extractor import STEP_REGISTRY, StagingExtractor, is_error
from scripts.user_role_staging.logging_config import configure_logging
from scripts.user_role_staging.procedure import render_call, render_task_resume, render_task_suspend
from scripts.user_role_staging.provisioning import provision, render_setup_script

logger = logging.getLogger("staging.cli")


def _open_warehouse(config: AppConfig) -> Warehouse:
    if config.snowflake is None:
        raise ValueError("SNOWFLAKE_ACCOUNT environment variable is required")
    return Warehouse(config.snowflake, config.staging)


def cmd_setup(args: argparse.Namespace) -> None:
    """Create schema, tables, procedure, task and reader role."""
    config = load_config(require_connection=not args.dry_run)
    include_task = not args.skip_task
    resume_task = not args.no_resume

    if args.dry_run:
        print(render_setup_script(config.staging, include_task, resume_task))
        return

    warehouse = _open_warehouse(config)
    try:
        count = provision(warehouse, include_task, resume_task)
        logger.info("Setup complete: %d statements executed", count)
    finally:
        warehouse.close()


def cmd_extract(args: argparse.Namespace) -> None:
    """Refresh the staging tables from this process."""
    config = load_config()
    warehouse = _open_warehouse(config)
    try:
        message = StagingExtractor(warehouse, args.table).run()
    finally:
        warehouse.close()
    print(message)
    if is_error(message):
        sys.exit(1)


def cmd_call(args: argparse.Namespace) -> None:
    """Invoke the stored procedure inside Snowflake and print its result."""
    config = load_config()
    warehouse = _open_warehouse(config)
    try:
        message = warehouse.scalar(render_call(config.staging)) or ""
    finally:
        warehouse.close()
    print(message)
    if is_error(message):
        sys.exit(1)


def cmd_status(args: argparse.Namespace) -> None:
    """Show recent extraction runs or scheduled task executions."""
    config = load_config()
    warehouse = _open_warehouse(config)
    try:
        if args.task:
            rows = warehouse.get_task_history(limit=args.limit)
            if not rows:
                print("No task executions found.")
                return
            fmt = "{:<10}  {:<19}  {:<19}  {}"
            print(fmt.format("STATE", "SCHEDULED", "COMPLETED", "RESULT"))
            print("-" * 120)
            for r in rows:
                result = r.get("error_message") or r.get("return_value") or ""
                print(fmt.format(
                    r["state"],
                    str(r["scheduled_time"])[:19] if r["scheduled_time"] else "",
                    str(r["completed_time"])[:19] if r["completed_time"] else "",
                    result[:70],
                ))
            return

        runs = warehouse.get_recent_runs(limit=args.limit)
        if not runs:
            print("No extraction runs found.")
            return

        fmt = "{:<36}  {:<8}  {:<19}  {:<19}  {:>8}  {}"
        print(fmt.format("RUN ID", "STATUS", "STARTED", "FINISHED", "INSERTED", "ERROR"))
        print("-" * 140)
        for r in runs:
            print(fmt.format(
                r["run_id"],
                r["status"],
                str(r["started_at"])[:19] if r["started_at"] else "",
                str(r["finished_at"])[:19] if r["finished_at"] else "",
                r.get("records_inserted") or 0,
                (r.get("error_message") or "")[:40],
            ))
    finally:
        warehouse.close()


TASK_ACTIONS = {"resume": render_task_resume, "suspend": render_task_suspend}


def cmd_task(args: argparse.Namespace) -> None:
    """Resume or suspend the daily extraction task."""
    config = load_config()
    warehouse = _open_warehouse(config)
    try:
        warehouse.execute(TASK_ACTIONS[args.action](config.staging))
    finally:
        warehouse.close()
    logger.info("Task %s: %s", args.action, config.staging.task_name)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="user-role-staging",
        description="Snowflake user and role staging extraction",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # setup command
    setup_parser = subparsers.add_parser("setup", help="Provision staging objects")
    setup_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the setup SQL instead of executing it",
    )
    setup_parser.add_argument(
        "--skip-task",
        action="store_true",
        help="Do not create the daily extraction task",
    )
    setup_parser.add_argument(
        "--no-resume",
        action="store_true",
        help="Create the task suspended",
    )
    setup_parser.set_defaults(func=cmd_setup)

    # extract command
    extract_parser = subparsers.add_parser("extract", help="Refresh staging tables now")
    extract_parser.add_argument(
        "--table", "-t",
        action="append",
        choices=sorted(STEP_REGISTRY),
        help="Refresh only this table (repeatable, default: all)",
    )
    extract_parser.set_defaults(func=cmd_extract)

    # call command
    call_parser = subparsers.add_parser("call", help="Run the stored procedure in Snowflake")
    call_parser.set_defaults(func=cmd_call)

    # status command
    status_parser = subparsers.add_parser("status", help="Show recent runs")
    status_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=10,
        help="Number of runs to show (default: 10)",
    )
    status_parser.add_argument(
        "--task",
        action="store_true",
        help="Show scheduled task history instead of client-side runs",
    )
    status_parser.set_defaults(func=cmd_status)

    # task command
    task_parser = subparsers.add_parser("task", help="Resume or suspend the daily task")
    task_parser.add_argument("action", choices=sorted(TASK_ACTIONS))
    task_parser.set_defaults(func=cmd_task)

    # keygen command
    keygen_parser = subparsers.add_parser("keygen", help="Generate an RSA key pair")
    keygen.add_arguments(keygen_parser)
    keygen_parser.set_defaults(func=keygen.cmd_keygen)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    args = build_parser().parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
