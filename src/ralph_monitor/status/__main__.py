"""CLI entry point for the terminal status report.

Prints active sessions, tool usage and recent tool calls from the store:
    python -m ralph_monitor.status
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import click

from ralph_monitor.config import Config, load_config
from ralph_monitor.models import parse_timestamp
from ralph_monitor.storage.store import MonitorStore, StoreError

RESET = "\033[0m"
COLORS = {
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
}

TOOL_COLORS = {
    "Bash": "green",
    "Read": "blue",
    "Write": "yellow",
    "Edit": "magenta",
    "Grep": "red",
    "Glob": "cyan",
    "Task": "yellow",
}

RECENT_SECONDS = 5 * 60
BAR_WIDTH = 20


def colorize(text: str, color: str) -> str:
    return f"{COLORS[color]}{text}{RESET}"


def format_clock(timestamp: str) -> str:
    """Format a timestamp as local HH:MM:SS."""
    dt = parse_timestamp(timestamp)
    if dt is None:
        return "--:--:--"
    return dt.astimezone().strftime("%H:%M:%S")


def format_relative_time(timestamp: str, now: datetime) -> str:
    """Describe how long ago a timestamp was, e.g. "42s ago" or "1h 5m ago"."""
    dt = parse_timestamp(timestamp)
    if dt is None:
        return "unknown"

    diff_sec = max(0, int((now - dt).total_seconds()))
    diff_min = diff_sec // 60
    if diff_sec < 60:
        return f"{diff_sec}s ago"
    if diff_min < 60:
        return f"{diff_min}m ago"
    return f"{diff_min // 60}h {diff_min % 60}m ago"


def render_bar(count: int, max_count: int, width: int = BAR_WIDTH) -> str:
    filled = round(count / max_count * width) if max_count else 0
    return "█" * filled + "░" * (width - filled)


def header(text: str) -> list[str]:
    return ["", colorize(f"═══ {text} ═══", "bold"), ""]


def render_status(store: MonitorStore, dashboard_url: str, now: datetime | None = None) -> list[str]:
    """Build the status report as printable lines."""
    if now is None:
        now = datetime.now(timezone.utc)

    lines = [
        colorize("\n╔══════════════════════════════════════╗", "cyan"),
        colorize("║       RALPH MONITOR - STATUS         ║", "cyan"),
        colorize("╚══════════════════════════════════════╝", "cyan"),
    ]

    lines.extend(header("Active Sessions"))
    sessions = store.get_active_sessions()
    if not sessions:
        lines.append(colorize("  No active sessions found.", "dim"))
        lines.append(colorize("  Run: ralph-monitor ingest", "dim"))
    for session in sessions[:5]:
        project_path = session["project_path"]
        project_name = project_path.rstrip("/").split("/")[-1] or project_path
        last_activity = parse_timestamp(session["last_activity"])
        is_recent = last_activity is not None and (now - last_activity).total_seconds() < RECENT_SECONDS
        marker = colorize("●", "green") if is_recent else colorize("○", "dim")
        relative = format_relative_time(session["last_activity"], now)
        lines.append(f"  {marker} {colorize(project_name, 'bold')} {colorize(f'({relative})', 'dim')}")
        lines.append(colorize(f"    {project_path}", "dim"))

    lines.extend(header("Tool Usage"))
    frequency = store.get_tool_frequency()
    if not frequency:
        lines.append(colorize("  No tool usage data.", "dim"))
    else:
        max_count = max(row["count"] for row in frequency)
        for row in frequency[:8]:
            name = row["tool_name"]
            color = TOOL_COLORS.get(name, "dim")
            bar = render_bar(row["count"], max_count)
            lines.append(f"  {colorize(name.ljust(12), color)} {colorize(bar, 'dim')} {row['count']}")

    lines.extend(header("Recent Tool Calls"))
    recent = store.get_recent_tool_calls(15)
    if not recent:
        lines.append(colorize("  No recent tool calls.", "dim"))
    for call in recent:
        name = call["tool_name"]
        preview = (call["input_preview"] or "")[:60]
        color = TOOL_COLORS.get(name, "dim")
        lines.append(f"  {colorize(format_clock(call['timestamp']), 'dim')} {colorize(name.ljust(10), color)} {preview}")

    lines.append("")
    lines.append(colorize("─" * 42, "dim"))
    lines.append(colorize(f"  Last update: {now.astimezone().strftime('%H:%M:%S')}", "dim"))
    lines.append(colorize(f"  Dashboard: {dashboard_url}", "dim"))
    lines.append("")
    return lines


@click.command()
@click.option("--db", "db_path", type=click.Path(dir_okay=False), help="Database path override")
@click.pass_context
def cli(ctx: click.Context, db_path: str | None) -> None:
    """Show active sessions and recent tool activity."""
    config = ctx.obj if isinstance(ctx.obj, Config) else load_config()
    path = Path(db_path) if db_path else config.database.path

    with MonitorStore(path) as store:
        try:
            lines = render_status(store, config.dashboard_url)
        except StoreError as e:
            click.echo(f"Error: cannot read database: {e}", err=True)
            sys.exit(1)

    for line in lines:
        click.echo(line)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
