"""Streamlined CLI interface with modular command structure."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from collections.abc import Callable

# Command modules are lazy-loaded so that `--help` and simple commands do not
# pay for pandas or the HTTP stack.

logger = logging.getLogger(__name__)

CommandHandler = Callable[[argparse.Namespace], int]

COMMAND_MODULES: dict[str, str] = {
    "analyze": "governance",
    "duplicates": "governance",
    "issues": "issues",
    "sync": "sync",
    "menu-map": "menu_map",
    "support-import": "support",
    "needs": "support",
}

COMMAND_HANDLER_ATTRS: dict[str, str] = {
    "analyze": "handle_analyze_command",
    "duplicates": "handle_duplicates_command",
    "issues": "handle_issues_command",
    "sync": "handle_sync_command",
    "menu-map": "handle_menu_map_command",
    "support-import": "handle_support_import_command",
    "needs": "handle_needs_command",
}


def create_parser() -> argparse.ArgumentParser:
    """Create minimal parser - commands loaded on-demand in main()."""
    parser = argparse.ArgumentParser(
        prog="kb-governance",
        description="Knowledge-base governance: quality issues, sync and support recurrence",
        add_help=False,
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. INFO, DEBUG)",
    )
    parser.add_argument(
        "command",
        nargs="?",
        help="Command to run (use 'COMMAND --help' for command-specific help)",
    )
    return parser


def _load_command_parser(command: str) -> tuple[Callable, Callable] | None:
    """Load parser and handler for a specific command on-demand.

    Returns: (add_parser_func, handle_command_func) or None if not found
    """
    module_name = COMMAND_MODULES.get(command)
    if not module_name:
        return None

    try:
        module = importlib.import_module(f"kb_governance.cli.commands.{module_name}")
    except ImportError as e:
        logger.warning("Failed to load command '%s': %s", command, e)
        return None

    attr = command.replace("-", "_")
    parser_func = getattr(module, f"add_{attr}_parser", None)
    handler_func = getattr(module, COMMAND_HANDLER_ATTRS[command], None)
    if parser_func and handler_func:
        return (parser_func, handler_func)
    return None


def _print_usage() -> None:
    print("Available commands:", file=sys.stderr)
    print("  analyze         - Run governance detectors over articles")
    print("  duplicates      - Scan for duplicated content")
    print("  issues          - List and manage governance issues")
    print("  sync            - Synchronise articles from the helpdesk")
    print("  menu-map        - Map helpdesk menus to internal systems")
    print("  support-import  - Import support tickets and detect recurrence")
    print("  needs           - Manage detected recurring needs")
    print("Use: kb-governance COMMAND --help for more info")


def main(
    argv: list[str] | None = None,
    *,
    setup_logging_func: Callable[[str], None] | None = None,
    handler_overrides: dict[str, CommandHandler] | None = None,
) -> int:
    """Main CLI entry point with on-demand command loading."""
    parser = create_parser()
    args, remaining = parser.parse_known_args(argv)

    log_level = getattr(args, "log_level", "INFO") or "INFO"
    if setup_logging_func is None:
        from .context import setup_logging as default_setup_logging

        setup_logging_func = default_setup_logging
    setup_logging_func(log_level)

    command = args.command
    if not command:
        _print_usage()
        return 1

    result = _load_command_parser(command)
    if result is None:
        print(f"Unknown command: {command}", file=sys.stderr)
        return 1
    add_parser_func, handle_func = result

    full_parser = argparse.ArgumentParser(
        prog=f"kb-governance {command}",
        description=f"Run {command} command",
    )
    full_parser.add_argument("--log-level", default="INFO")
    subparsers = full_parser.add_subparsers(dest="command")
    add_parser_func(subparsers)
    full_args = full_parser.parse_args([command] + remaining)

    if handler_overrides and command in handler_overrides:
        return handler_overrides[command](full_args)
    return handle_func(full_args)


if __name__ == "__main__":
    sys.exit(main())
