#!/usr/bin/env python3
"""
Two-step semester reset.

Step 1 counts the term's courses and prints a confirmation token.  Step 2
takes the token and rewinds every course of the term to ``unassigned``,
appending one history row per course.  Payments and existing history are
left untouched.

Usage:
  python3 scripts/semester_reset.py preview --year 2024 --semester First
  python3 scripts/semester_reset.py confirm --year 2024 --semester First \\
      --token <token> --actor-id <uuid>

Settings (database URL, confirmation secret and TTL, log level) come from
workload_config.get_settings(); --db-url overrides the database URL.

Exit codes: 0 success, 1 refused or failed, 2 bad arguments.
"""

import argparse
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Reset a semester's approval workflow")
    sub = p.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("preview", "Count the term's courses and issue a confirmation token"),
        ("confirm", "Reset the term using a token from 'preview'"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--year", required=True, help="Academic year, e.g. 2024")
        cmd.add_argument("--semester", required=True, choices=["First", "Second"])
        cmd.add_argument("--db-url", default=None, help="Override the database URL")
        if name == "confirm":
            cmd.add_argument("--token", required=True)
            cmd.add_argument("--actor-id", required=True, type=UUID)
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from workload_config import get_settings
    from workload_kernel.db.engine import (
        create_tables,
        init_engine_from_url,
        session_scope,
    )
    from workload_kernel.exceptions import WorkloadKernelError
    from workload_kernel.logging_config import configure_logging
    from workload_kernel.services.notification import (
        LoggingNotificationDispatcher,
        NullNotificationDispatcher,
    )
    from workload_kernel.utils.confirmation import ConfirmationIssuer
    from workload_services.workflow_orchestrator import WorkflowOrchestrator

    settings = get_settings()
    configure_logging(level=settings.log_level)
    create_tables(init_engine_from_url(args.db_url or settings.database_url))

    issuer = ConfirmationIssuer(
        settings.confirmation_secret,
        ttl_seconds=settings.confirmation_ttl_seconds,
    )
    notifier = (
        LoggingNotificationDispatcher()
        if settings.notifications_enabled
        else NullNotificationDispatcher()
    )

    try:
        with session_scope() as session:
            orchestrator = WorkflowOrchestrator(
                session,
                notifier=notifier,
                confirmations=issuer,
                currency=settings.currency,
                rate_tolerance=settings.rate_tolerance,
            )
            if args.command == "preview":
                preview = orchestrator.preview_reset(args.year, args.semester)
                print(
                    f"{preview.course_count} course(s) in {preview.semester.value} "
                    f"semester {preview.academic_year} will be reset to 'unassigned'."
                )
                print("Existing approval history and payments are kept.")
                print(f"Confirm within {settings.confirmation_ttl_seconds}s with:")
                print(f"  --token {preview.token}")
                return 0

            result = orchestrator.reset_semester(
                args.year, args.semester, args.token, args.actor_id,
            )
    except WorkloadKernelError as exc:
        print(f"Refused [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    print(
        f"Reset {result.reset_count} course(s) in {result.semester.value} "
        f"semester {result.academic_year}."
    )
    for failure in result.failed:
        print(
            f"  FAILED {failure.course_id} [{failure.error_code}]: {failure.error_message}",
            file=sys.stderr,
        )
    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
