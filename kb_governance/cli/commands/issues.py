"""Inspect and move governance issues through their workflow."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime

from kb_governance.cli.context import report_failure
from kb_governance.governance import priority
from kb_governance.governance.issues import IssueStore
from kb_governance.governance.workflow import IssueWorkflow
from kb_governance.models import IssueStatus, IssueType
from kb_governance.models.database import DatabaseManager
from kb_governance.utils.time import utcnow

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "id",
    "articleId",
    "issueType",
    "severity",
    "status",
    "priorityLevel",
    "priorityScore",
    "overdue",
    "slaDueAt",
    "responsibleId",
    "responsibleType",
    "message",
    "ignoredReason",
    "createdAt",
    "updatedAt",
    "resolvedAt",
    "evidence",
]


def _parse_date(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r}") from exc


def add_issues_parser(subparsers):
    parser = subparsers.add_parser("issues", help="List and manage governance issues")
    actions = parser.add_subparsers(dest="issues_action")

    list_parser = actions.add_parser("list", help="List issues ranked by priority")
    list_parser.add_argument("--status", choices=[s.value for s in IssueStatus])
    list_parser.add_argument("--type", dest="issue_type", choices=[t.value for t in IssueType])
    list_parser.add_argument("--article-id", type=int)
    list_parser.add_argument("--live", action="store_true", help="Only live issues")
    list_parser.add_argument("--limit", type=int, default=50)

    show = actions.add_parser("show", help="Show one issue")
    show.add_argument("issue_id", type=int)

    assign = actions.add_parser("assign", help="Assign an issue to a responsible")
    assign.add_argument("issue_id", type=int)
    assign.add_argument("responsible_id")
    assign.add_argument("--responsible-type", default=None)
    assign.add_argument("--due-date", type=_parse_date, default=None)
    assign.add_argument("--actor", default="cli")

    status = actions.add_parser("status", help="Change the status of one or more issues")
    status.add_argument("issue_ids", type=int, nargs="+")
    status.add_argument("new_status", metavar="STATUS")
    status.add_argument("--reason", default=None, help="Required when ignoring")
    status.add_argument("--actor", default="cli")

    reopen = actions.add_parser("reopen", help="Reopen a resolved issue")
    reopen.add_argument("issue_id", type=int)
    reopen.add_argument("--actor", default="cli")

    hist = actions.add_parser("history", help="Show the audit trail of an issue")
    hist.add_argument("issue_id", type=int)

    export = actions.add_parser("export", help="Export issues to CSV")
    export.add_argument("output", help="Destination CSV path")
    export.add_argument("--live", action="store_true", help="Only live issues")
    return parser


def _print_issue(view: dict) -> None:
    flag = " ⏰ OVERDUE" if view["overdue"] else ""
    print(
        f"#{view['id']:<6} [{view['priorityLevel']:<8} {view['priorityScore']:>3}] "
        f"{view['issueType']:<24} {view['severity']:<5} {view['status']:<11} "
        f"article={view['articleId']}{flag}"
    )


def _list(args) -> int:
    now = utcnow()
    with DatabaseManager() as db:
        store = IssueStore(db)
        issues = store.list_issues(
            status=args.status,
            issue_type=args.issue_type,
            article_id=args.article_id,
            live_only=args.live,
        )
        ranked = priority.rank_issues(issues, now)[: args.limit]
        print()
        print(f"📋 Governance issues ({len(ranked)} of {len(issues)})")
        print("=" * 70)
        for issue in ranked:
            _print_issue(priority.issue_view(issue, now))
    return 0


def _show(args) -> int:
    with DatabaseManager() as db:
        issue = IssueStore(db).get(args.issue_id)
        view = priority.issue_view(issue)
    print(json.dumps(view, indent=2, default=str, ensure_ascii=False))
    return 0


def _assign(args) -> int:
    with DatabaseManager() as db:
        issue = IssueWorkflow(db).assign(
            args.issue_id,
            args.responsible_id,
            responsible_type=args.responsible_type,
            due_date=args.due_date,
            actor=args.actor,
        )
        print(f"✅ Issue {issue.id} assigned to {issue.responsible_id} (due {issue.sla_due_at})")
    return 0


def _status(args) -> int:
    with DatabaseManager() as db:
        workflow = IssueWorkflow(db)
        if len(args.issue_ids) == 1:
            workflow.change_status(
                args.issue_ids[0], args.new_status, args.actor, ignored_reason=args.reason
            )
            changed = 1
        else:
            changed = workflow.bulk_update_status(
                args.issue_ids, args.new_status, args.actor, ignored_reason=args.reason
            )
    print(f"✅ Status updated to {args.new_status.upper()} ({changed} issue(s))")
    return 0


def _reopen(args) -> int:
    with DatabaseManager() as db:
        issue = IssueWorkflow(db).reopen(args.issue_id, args.actor)
        print(f"✅ Issue {issue.id} reopened; SLA due {issue.sla_due_at}")
    return 0


def _history(args) -> int:
    with DatabaseManager() as db:
        rows = IssueWorkflow(db).get_history(args.issue_id)
        print()
        print(f"🕑 History for issue {args.issue_id}")
        print("=" * 70)
        for row in rows:
            print(f"{row.created_at.isoformat()}  {row.action:<14} by {row.actor or '-'}")
            print(f"    {json.dumps(row.old_value, default=str)} -> {json.dumps(row.new_value, default=str)}")
    return 0


def export_issues(db, output: str, *, live_only: bool = False, now: datetime | None = None) -> int:
    """Write the issue record surface to ``output`` as CSV."""
    import pandas as pd

    now = now or utcnow()
    issues = IssueStore(db).list_issues(live_only=live_only)
    rows = [priority.issue_view(issue, now) for issue in issues]
    frame = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    if not frame.empty:
        frame["evidence"] = frame["evidence"].map(
            lambda value: json.dumps(value, ensure_ascii=False) if value is not None else ""
        )
    frame.to_csv(output, index=False)
    return len(frame)


def _export(args) -> int:
    with DatabaseManager() as db:
        count = export_issues(db, args.output, live_only=args.live)
    print(f"✅ Exported {count} issue(s) to {args.output}")
    return 0


_ACTIONS = {
    "list": _list,
    "show": _show,
    "assign": _assign,
    "status": _status,
    "reopen": _reopen,
    "history": _history,
    "export": _export,
}


def handle_issues_command(args) -> int:
    action = getattr(args, "issues_action", None) or "list"
    if action == "list" and not hasattr(args, "limit"):
        args.status = args.issue_type = args.article_id = None
        args.live = False
        args.limit = 50
    try:
        return _ACTIONS[action](args)
    except Exception as e:
        return report_failure(e, f"issues {action}")
