"""Maintain the helpdesk menu -> internal system map."""

import logging

from kb_governance.cli.context import report_failure
from kb_governance.models.database import DatabaseManager
from kb_governance.sync.classification import MenuMapService

logger = logging.getLogger(__name__)


def add_menu_map_parser(subparsers):
    parser = subparsers.add_parser(
        "menu-map", help="Map helpdesk menus to internal systems"
    )
    actions = parser.add_subparsers(dest="menu_map_action")

    list_parser = actions.add_parser("list", help="List menu mappings")
    list_parser.add_argument(
        "--all", action="store_true", help="Include retired mappings"
    )

    set_parser = actions.add_parser("set", help="Map a menu to a system code")
    set_parser.add_argument("menu_id", type=int)
    set_parser.add_argument("system_code")
    set_parser.add_argument("--name", default=None, help="Menu name, for reference")

    off = actions.add_parser("deactivate", help="Retire the active mapping of a menu")
    off.add_argument("menu_id", type=int)
    return parser


def handle_menu_map_command(args) -> int:
    action = getattr(args, "menu_map_action", None) or "list"
    try:
        with DatabaseManager() as db:
            service = MenuMapService(db)
            if action == "set":
                mapping = service.set_mapping(args.menu_id, args.system_code, args.name)
                print(f"✅ Menu {mapping.source_menu_id} -> {mapping.system_code}")
                return 0

            if action == "deactivate":
                mapping = service.deactivate(args.menu_id)
                print(f"✅ Menu {mapping.source_menu_id} mapping retired")
                return 0

            mappings = service.list_mappings(include_inactive=getattr(args, "all", False))
            print()
            print(f"🧭 Menu map ({len(mappings)})")
            print("=" * 70)
            for mapping in mappings:
                state = "active" if mapping.active else "retired"
                print(
                    f"menu={mapping.source_menu_id:<8} system={mapping.system_code:<12} "
                    f"{state:<8} {mapping.source_menu_name or ''}"
                )
            return 0
    except Exception as e:
        return report_failure(e, f"menu-map {action}")
