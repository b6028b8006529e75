"""Trigger and inspect knowledge-base synchronisation runs."""

import logging

from kb_governance.cli.context import build_client, report_failure
from kb_governance.models.database import DatabaseManager
from kb_governance.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


def add_sync_parser(subparsers):
    parser = subparsers.add_parser("sync", help="Synchronise articles from the helpdesk")
    actions = parser.add_subparsers(dest="sync_action")

    run = actions.add_parser("run", help="Run a sync now")
    run.add_argument(
        "--mode",
        default="DELTA",
        help="FULL, DELTA, DELTA_WINDOW or INCREMENTAL (default: DELTA)",
    )
    run.add_argument(
        "--days-back",
        type=int,
        default=None,
        help="Delta window in days; 0 or omitted uses the last successful run",
    )

    actions.add_parser("status", help="Show the sync config and the latest run")

    cfg = actions.add_parser("config", help="Update the sync config")
    toggle = cfg.add_mutually_exclusive_group()
    toggle.add_argument("--enable", dest="enabled", action="store_true", default=None)
    toggle.add_argument("--disable", dest="enabled", action="store_false")
    cfg.add_argument("--mode", default=None)
    cfg.add_argument("--interval-minutes", type=int, default=None)
    cfg.add_argument("--days-back", type=int, default=None)
    return parser


def _print_run(run) -> None:
    if run is None:
        print("Latest run: none")
        return
    print(f"Latest run: #{run.id} {run.mode} {run.status}")
    print(f"  Started:  {run.started_at}")
    print(f"  Finished: {run.finished_at}")
    if run.duration_ms is not None:
        print(f"  Duration: {run.duration_ms} ms")
    for key, value in run.stats.items():
        print(f"  {key}: {value}")
    if run.note:
        print(f"  Note: {run.note}")


def handle_sync_command(args) -> int:
    action = getattr(args, "sync_action", None) or "status"
    try:
        with DatabaseManager() as db:
            if action == "run":
                orchestrator = SyncOrchestrator(db, build_client())
                print()
                print(f"🔄 Sync ({args.mode.upper()})")
                print("=" * 70)
                run = orchestrator.run_now(args.mode, args.days_back)
                _print_run(run)
                return 0

            orchestrator = SyncOrchestrator(db, client=None)
            if action == "config":
                cfg = orchestrator.update_config(
                    enabled=args.enabled,
                    mode=args.mode,
                    interval_minutes=args.interval_minutes,
                    days_back=args.days_back,
                )
                print("✅ Sync config updated")
            else:
                cfg = orchestrator.get_config()

            print()
            print("🔄 Sync status")
            print("=" * 70)
            print(f"Enabled: {cfg.enabled}")
            print(f"Mode: {cfg.mode}")
            print(f"Interval: {cfg.interval_minutes} min")
            print(f"Days back: {cfg.days_back}")
            print(f"Last started: {cfg.last_started_at}")
            print(f"Last finished: {cfg.last_finished_at}")
            print(f"Running: {orchestrator.is_running()}")
            _print_run(orchestrator.latest_run())
        return 0
    except Exception as e:
        return report_failure(e, f"sync {action}")
