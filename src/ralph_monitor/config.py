"""Configuration loading and management."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_HOME = Path.home() / "ralph-monitor"


@dataclass
class DatabaseConfig:
    path: Path = field(default_factory=lambda: DEFAULT_HOME / "data" / "ralph-monitor.db")


@dataclass
class IngestionConfig:
    rescan_interval_seconds: int = 10
    active_window_seconds: int = 300
    stability_ms: int = 500
    debounce_ms: int = 2000


@dataclass
class LoggingConfig:
    log_dir: Path = field(default_factory=lambda: DEFAULT_HOME / "logs")
    level: int = logging.INFO
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 3


@dataclass
class Config:
    projects_dir: Path = field(default_factory=lambda: Path.home() / ".claude" / "projects")
    dashboard_url: str = "http://localhost:3600"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def parse_level(value: str | int | None) -> int:
    """Translate a level name like "debug" into a logging constant."""
    if value is None:
        return logging.INFO
    if isinstance(value, int):
        return value
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else logging.INFO


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file.

    Environment variables RALPH_MONITOR_DB and RALPH_MONITOR_PROJECTS_DIR
    take precedence over the file.
    """
    if config_path is None:
        # Look for config in standard locations
        search_paths = [
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "ralph-monitor" / "config.yaml",
            Path("/etc/ralph-monitor/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    data: dict = {}
    if config_path is not None and config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    defaults = Config()

    projects_dir = defaults.projects_dir
    if data.get("projects_dir"):
        projects_dir = expand_path(data["projects_dir"])

    db_data = data.get("database", {}) or {}
    database = DatabaseConfig(
        path=expand_path(db_data["path"]) if db_data.get("path") else defaults.database.path,
    )

    ing_data = data.get("ingestion", {}) or {}
    ingestion = IngestionConfig(
        rescan_interval_seconds=ing_data.get("rescan_interval_seconds", 10),
        active_window_seconds=ing_data.get("active_window_seconds", 300),
        stability_ms=ing_data.get("stability_ms", 500),
        debounce_ms=ing_data.get("debounce_ms", 2000),
    )

    log_data = data.get("logging", {}) or {}
    logging_config = LoggingConfig(
        log_dir=expand_path(log_data["log_dir"]) if log_data.get("log_dir") else defaults.logging.log_dir,
        level=parse_level(log_data.get("level")),
        max_bytes=log_data.get("max_bytes", defaults.logging.max_bytes),
        backup_count=log_data.get("backup_count", defaults.logging.backup_count),
    )

    # Environment overrides
    if os.environ.get("RALPH_MONITOR_DB"):
        database.path = expand_path(os.environ["RALPH_MONITOR_DB"])
    if os.environ.get("RALPH_MONITOR_PROJECTS_DIR"):
        projects_dir = expand_path(os.environ["RALPH_MONITOR_PROJECTS_DIR"])

    return Config(
        projects_dir=projects_dir,
        dashboard_url=data.get("dashboard_url", defaults.dashboard_url),
        database=database,
        ingestion=ingestion,
        logging=logging_config,
    )
