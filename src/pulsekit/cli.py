"""
cli.py — pulsekit command line

Inspect and edit the on-disk pieces of a pulsekit agent: the daily notes
and the JSON state files.

Usage:
    pulsekit memory show [--days N]
    pulsekit memory append TEXT [--header H]
    pulsekit state show PATH
    pulsekit state clear PATH
    pulsekit heartbeat status CHECK_ID INTERVAL_SECONDS [--path PATH]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Optional, Sequence

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pulsekit.config.settings import ConfigError, Settings, load_settings
from pulsekit.exceptions import PulseError
from pulsekit.heartbeat.manager import HeartbeatManager
from pulsekit.memory.daily_log import DailyLog
from pulsekit.observability.logger import get_logger, setup_logging_from_settings
from pulsekit.state.store import StateStore

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────

def cmd_memory_show(args, settings: Settings, console: Console) -> int:
    """Print recent daily notes, newest first."""
    daily = DailyLog.from_settings(settings)
    days = args.days or settings.memory.recent_days
    text = asyncio.run(daily.recent_context(days))
    if not text:
        console.print(f"[dim]No notes in the last {days} day(s) under {daily.directory}[/dim]")
        return 0
    console.print(Panel(text, title=str(daily.directory), expand=False))
    return 0


def cmd_memory_append(args, settings: Settings, console: Console) -> int:
    daily = DailyLog.from_settings(settings)
    if args.header:
        asyncio.run(daily.log(args.header, args.text))
    else:
        asyncio.run(daily.append(args.text))
    console.print(f"[green]✓[/green] Appended to {daily.path_for()}")
    return 0


def cmd_state_show(args, settings: Settings, console: Console) -> int:
    state = asyncio.run(StateStore(args.path).get())
    if args.json_output:
        print(json.dumps(state, indent=2))
        return 0

    table = Table(title=args.path)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in sorted(state.items()):
        table.add_row(key, json.dumps(value))
    console.print(table)
    return 0


def cmd_state_clear(args, settings: Settings, console: Console) -> int:
    asyncio.run(StateStore(args.path).clear())
    console.print(f"[green]✓[/green] Cleared {args.path}")
    return 0


def cmd_heartbeat_status(args, settings: Settings, console: Console) -> int:
    """Show how long until a heartbeat check is next due."""
    manager = HeartbeatManager(args.path or settings.state_path)
    remaining = asyncio.run(manager.next_check_in(args.check_id, args.interval))
    if args.json_output:
        print(json.dumps({"id": args.check_id, "due_in_seconds": remaining}))
    elif remaining == 0:
        console.print(f"[yellow]{args.check_id}[/yellow] is due now")
    else:
        console.print(f"[cyan]{args.check_id}[/cyan] is due in {remaining:.0f}s")
    return 0


_COMMANDS = {
    ("memory", "show"): cmd_memory_show,
    ("memory", "append"): cmd_memory_append,
    ("state", "show"): cmd_state_show,
    ("state", "clear"): cmd_state_clear,
    ("heartbeat", "status"): cmd_heartbeat_status,
}


# ─────────────────────────────────────────────────────────────────────────────
# Parser
# ─────────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pulsekit",
        description="pulsekit — inspect daily notes and persisted agent state.",
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging.level",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--json", dest="json_output", action="store_true", help="Machine-readable JSON output")

    sub = parser.add_subparsers(dest="command", required=True)

    # memory
    memory = sub.add_parser("memory", help="Daily notes").add_subparsers(dest="action", required=True)
    p = memory.add_parser("show", help="Print recent notes")
    p.add_argument("--days", type=int, default=None, help="How many days back (default: memory.recent_days)")
    p = memory.add_parser("append", help="Append an entry to today's notes")
    p.add_argument("text", help="Entry body")
    p.add_argument("--header", default=None, help="Optional ### heading for the entry")

    # state
    state = sub.add_parser("state", help="JSON state files").add_subparsers(dest="action", required=True)
    p = state.add_parser("show", help="Print a state file")
    p.add_argument("path", help="State file path")
    p = state.add_parser("clear", help="Reset a state file to empty")
    p.add_argument("path", help="State file path")

    # heartbeat
    heartbeat = sub.add_parser("heartbeat", help="Heartbeat checks").add_subparsers(dest="action", required=True)
    p = heartbeat.add_parser("status", help="Time until a check is due")
    p.add_argument("check_id", help="Check identifier")
    p.add_argument("interval", type=float, help="Check interval in seconds")
    p.add_argument("--path", default=None, help="State file (default: state.path)")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console(no_color=args.no_color, stderr=False)

    try:
        settings = load_settings(args.config)
        if args.log_level:
            settings.logging.level = args.log_level
        settings.validate_all()
    except (ConfigError, ValidationError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 2

    setup_logging_from_settings(settings)
    handler = _COMMANDS[(args.command, args.action)]

    try:
        return handler(args, settings, console)
    except PulseError as e:
        log.error("cli.command.failed", command=f"{args.command} {args.action}", error=str(e))
        console.print(f"[red]Error:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
