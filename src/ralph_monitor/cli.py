"""Command line interface: one-shot ingestion, watch mode and status."""

import logging
import sys
from pathlib import Path

import click

from ralph_monitor.config import Config, load_config
from ralph_monitor.ingestion.__main__ import run_watch_daemon
from ralph_monitor.ingestion.daemon import IngestionService, summarize
from ralph_monitor.logging import setup_logging
from ralph_monitor.status.__main__ import cli as status_command
from ralph_monitor.storage.store import MonitorStore


def _apply_overrides(config: Config, projects_dir: str | None, db_path: str | None) -> Config:
    if projects_dir:
        config.projects_dir = Path(projects_dir).expanduser()
    if db_path:
        config.database.path = Path(db_path).expanduser()
    return config


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to config.yaml",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """Monitor Claude Code sessions."""
    ctx.obj = load_config(config_path)


@cli.command()
@click.option("--projects-dir", help="Projects directory override")
@click.option("--db", "db_path", help="Database path override")
@click.pass_obj
def ingest(config: Config, projects_dir: str | None, db_path: str | None) -> None:
    """Ingest every conversation log once and exit."""
    config = _apply_overrides(config, projects_dir, db_path)
    setup_logging(
        "ingest",
        log_dir=config.logging.log_dir,
        level=config.logging.level,
        console_level=logging.WARNING,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
    )

    click.echo("=== Ralph Monitor - One-Time Ingestion ===\n")
    click.echo(f"Projects directory: {config.projects_dir}")
    click.echo(f"Database: {config.database.path}\n")

    if not config.projects_dir.is_dir():
        click.echo(f"Error: projects directory not found: {config.projects_dir}", err=True)
        sys.exit(1)

    with MonitorStore(config.database.path) as store:
        service = IngestionService(
            store,
            config.projects_dir,
            active_window_seconds=config.ingestion.active_window_seconds,
        )
        reports = service.run_scan()

    for report in reports:
        name = f"{report.path.parent.name}/{report.path.name}"
        if report.error is not None:
            click.echo(f"  ✗ {name}: {report.error}")
        elif report.changed:
            click.echo(f"  ✓ {name}: {report.messages} messages, {report.tool_calls} tool calls")

    totals = summarize(reports)
    click.echo("\n" + "─" * 50)
    click.echo("\nIngestion complete!")
    click.echo(f"   Files processed: {totals['changed']}")
    click.echo(f"   Total messages: {totals['messages']}")
    click.echo(f"   Total tool calls: {totals['tool_calls']}")
    if totals["failed"]:
        click.echo(f"   Failed files: {totals['failed']}")


@cli.command()
@click.option("--projects-dir", help="Projects directory override")
@click.option("--db", "db_path", help="Database path override")
@click.pass_obj
def watch(config: Config, projects_dir: str | None, db_path: str | None) -> None:
    """Ingest continuously until interrupted."""
    run_watch_daemon(_apply_overrides(config, projects_dir, db_path))


cli.add_command(status_command, name="status")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
