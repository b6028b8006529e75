"""Support ticket import and recurring-need follow-up commands."""

import argparse
import logging
from datetime import datetime, timedelta

from kb_governance import config
from kb_governance.cli.context import build_client, report_failure
from kb_governance.models.database import DatabaseManager
from kb_governance.sync.needs import NeedService
from kb_governance.sync.support import SupportImportService
from kb_governance.utils.time import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


def _parse_datetime(value: str) -> datetime:
    try:
        return to_naive_utc(datetime.fromisoformat(value))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid datetime: {value!r}") from exc


def add_support_import_parser(subparsers):
    parser = subparsers.add_parser(
        "support-import",
        help="Import helpdesk tickets and evaluate recurrence rules",
    )
    parser.add_argument(
        "--days-back",
        type=int,
        default=config.SUPPORT_IMPORT_DAYS_BACK,
        help=f"Import tickets updated in the last N days (default: {config.SUPPORT_IMPORT_DAYS_BACK})",
    )
    parser.add_argument("--start", type=_parse_datetime, help="Range start (ISO 8601, UTC)")
    parser.add_argument("--end", type=_parse_datetime, help="Range end (ISO 8601, UTC)")
    return parser


def add_needs_parser(subparsers):
    parser = subparsers.add_parser("needs", help="Manage detected recurring needs")
    actions = parser.add_subparsers(dest="needs_action")

    list_parser = actions.add_parser("list", help="List detected needs")
    list_parser.add_argument("--status", default=None)
    list_parser.add_argument("--limit", type=int, default=100)

    task = actions.add_parser("create-task", help="Mark a need as having an internal task")
    task.add_argument("need_id", type=int)

    ticket = actions.add_parser("master-ticket", help="Open or update the remote master ticket")
    ticket.add_argument("need_id", type=int)
    ticket.add_argument("--actor", default=None, help="Remote agent id creating the ticket")
    return parser


def handle_support_import_command(args) -> int:
    end = args.end or utcnow()
    if args.start is not None:
        start = args.start
    else:
        start = end - timedelta(days=args.days_back)

    print()
    print("🎫 Support import")
    print("=" * 70)
    print(f"Range: {start.isoformat()} -> {end.isoformat()}")
    try:
        with DatabaseManager() as db:
            result = SupportImportService(db, build_client()).run_import(start, end)
        print(f"Tickets created:  {result.tickets_created}")
        print(f"Tickets updated:  {result.tickets_updated}")
        print(f"Messages created: {result.messages_created}")
        print()
        return 0
    except Exception as e:
        logger.error("Support import failed: %s", e, exc_info=True)
        return report_failure(e, "Support import")


def handle_needs_command(args) -> int:
    action = getattr(args, "needs_action", None) or "list"
    try:
        with DatabaseManager() as db:
            if action == "list":
                service = NeedService(db)
                needs = service.list_needs(
                    status=getattr(args, "status", None), limit=getattr(args, "limit", 100)
                )
                print()
                print(f"🔁 Detected needs ({len(needs)})")
                print("=" * 70)
                for need in needs:
                    print(
                        f"#{need.id:<5} cluster={need.cluster_id:<5} rule={need.rule_id:<4} "
                        f"{need.status:<6} task={need.task_status:<8} "
                        f"ticket={need.external_ticket_id or '-'} "
                        f"last={need.last_detected_at}"
                    )
                return 0

            if action == "create-task":
                need = NeedService(db).create_task(args.need_id)
                print(f"✅ Need {need.id} task status: {need.task_status}")
                return 0

            need = NeedService(db, build_client()).create_master_ticket(args.need_id, args.actor)
            print(f"✅ Need {need.id} master ticket: {need.external_ticket_id}")
            return 0
    except Exception as e:
        return report_failure(e, f"needs {action}")
