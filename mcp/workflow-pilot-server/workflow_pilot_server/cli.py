#!/usr/bin/env python3
"""
workflow-pilot (wp): workflow state manager for AI coding sessions

Usage:
    wp flows              List available workflows
    wp start <flow-id>    Start a workflow session in the current directory
    wp status             Show current stage, checklist, transitions
    wp advance            Move to next stage
    wp back               Go to previous stage
    wp loop               Repeat current stage
    wp check <n>          Toggle checklist item n
    wp end                End current session
    wp prompt             One-line stage summary for prompt injection
    wp statusline         Colored breadcrumb for a terminal status line

Aliases: s=status, a/next=advance, b=back, l=loop, c=check, done=end, list=flows

The statusline command accepts the host's JSON payload on stdin and uses its
"cwd" (or "workspace.current_dir") to locate the session.
"""

import argparse
import json
import logging
import sys
from typing import Any, Optional

from .config_tools import config_get_effective, get_flows_dir, get_sessions_dir
from .state_tools import (
    workflow_advance,
    workflow_back,
    workflow_check,
    workflow_end,
    workflow_list_flows,
    workflow_loop,
    workflow_prompt,
    workflow_start,
    workflow_status,
    workflow_statusline,
)


def _configure_logging() -> None:
    level_name = str(config_get_effective()["config"].get("log_level", "WARNING")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _cwd_from_payload(stream) -> Optional[str]:
    """Extract the working directory from a statusline JSON payload."""
    if stream is None:
        return None
    try:
        if stream.isatty():
            return None
        payload = json.load(stream)
    except (OSError, ValueError):
        return None
    if not isinstance(payload, dict):
        return None

    workspace = payload.get("workspace")
    if isinstance(workspace, dict) and isinstance(workspace.get("current_dir"), str):
        return workspace["current_dir"]
    if isinstance(payload.get("cwd"), str):
        return payload["cwd"]
    return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wp",
        description="Workflow state manager for AI coding sessions",
        epilog=f"Sessions: {get_sessions_dir()}  Flows: {get_flows_dir()}",
    )
    parser.add_argument("--json", action="store_true", help="Output the raw result as JSON")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("flows", aliases=["list"], help="List available workflows")
    start = subparsers.add_parser("start", help="Start a workflow session")
    start.add_argument("flow_id", help="ID of the flow to start")
    subparsers.add_parser("status", aliases=["s"], help="Show current stage, checklist, transitions")
    subparsers.add_parser("advance", aliases=["next", "a"], help="Move to next stage")
    subparsers.add_parser("back", aliases=["b"], help="Go to previous stage")
    subparsers.add_parser("loop", aliases=["l"], help="Repeat current stage")
    check = subparsers.add_parser("check", aliases=["c"], help="Toggle checklist item n")
    check.add_argument("item", type=int, help="1-based checklist item number")
    subparsers.add_parser("end", aliases=["done"], help="End current session")
    subparsers.add_parser("prompt", help="One-line stage summary")
    statusline = subparsers.add_parser("statusline", help="Colored breadcrumb for a status line")
    statusline.add_argument("--cwd", help="Directory to resolve the session from")

    return parser


COMMANDS = {
    "flows": "flows", "list": "flows",
    "start": "start",
    "status": "status", "s": "status",
    "advance": "advance", "next": "advance", "a": "advance",
    "back": "back", "b": "back",
    "loop": "loop", "l": "loop",
    "check": "check", "c": "check",
    "end": "end", "done": "end",
    "prompt": "prompt",
    "statusline": "statusline",
}


def run_command(args: argparse.Namespace, stdin=None) -> dict[str, Any]:
    command = COMMANDS[args.command]

    if command == "flows":
        return workflow_list_flows()
    if command == "start":
        return workflow_start(args.flow_id)
    if command == "status":
        return workflow_status()
    if command == "advance":
        return workflow_advance()
    if command == "back":
        return workflow_back()
    if command == "loop":
        return workflow_loop()
    if command == "check":
        return workflow_check(args.item)
    if command == "end":
        return workflow_end()
    if command == "prompt":
        return workflow_prompt()
    cwd = args.cwd or _cwd_from_payload(stdin)
    return workflow_statusline(cwd)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    _configure_logging()
    result = run_command(args, stdin=sys.stdin)

    if args.json:
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0 if result["success"] else 1

    if result["success"]:
        print(result["message"])
        return 0

    print(f"❌ {result['error']}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
