"""CLI entry point for the `hr-actions` command."""

from __future__ import annotations

import argparse
import json
import sys

from .config import Settings, load_settings
from .exceptions import ActionError
from .log import configure_logging
from .models import Action
from .server import serialize_action, serve
from .service import ActionService
from .store import SqliteActionStore


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to a TOML config file (default: ./hr-actions.toml if present)")
    parser.add_argument("--db", dest="db_path", help="SQLite database path")
    parser.add_argument("--log-level", choices=["debug", "info", "warning", "error"], help="Log level")
    parser.add_argument("--log-file", help="Write logs to this file")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hr-actions", description="HR action lifecycle service")
    sub = parser.add_subparsers(dest="command", required=True)

    srv = sub.add_parser("serve", help="Start the HTTP API")
    _add_common_options(srv)
    srv.add_argument("--host", help="Bind address")
    srv.add_argument("--port", type=int, help="Port")

    overdue = sub.add_parser("overdue", help="List overdue actions")
    _add_common_options(overdue)

    due = sub.add_parser("due", help="List recurring actions due to run again")
    _add_common_options(due)

    show = sub.add_parser("show", help="Show one action as JSON")
    _add_common_options(show)
    show.add_argument("action_id", help="Action id")

    return parser


def _settings(args: argparse.Namespace) -> Settings:
    return load_settings(
        args.config,
        db_path=args.db_path,
        log_level=args.log_level,
        log_file=args.log_file,
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
    )


def _summary(action: Action) -> str:
    when = action.scheduled_for or action.next_run_at
    when_str = when.isoformat() if when else "-"
    return f"{action.id}  {action.status.value:<11}  {action.type.value:<17}  {when_str}  {action.target}"


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _settings(args)
    except ActionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    configure_logging(settings.log_level, settings.log_file, settings.log_json)

    try:
        service = ActionService(
            SqliteActionStore(settings.db_path),
            max_conflict_retries=settings.max_conflict_retries,
        )
    except ActionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        if args.command == "serve":
            serve(service, settings.host, settings.port)
        elif args.command == "overdue":
            for action in service.list_overdue():
                print(_summary(action))
        elif args.command == "due":
            for action in service.list_due_recurring():
                print(_summary(action))
        elif args.command == "show":
            action = service.get(args.action_id)
            print(json.dumps(serialize_action(action, service.now()), indent=2))
    except ActionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        service.close()
    return 0
