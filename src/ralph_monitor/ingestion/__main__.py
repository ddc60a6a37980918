"""CLI entry point for the watch daemon.

Allows running continuous ingestion as a module:
    python -m ralph_monitor.ingestion
"""

import signal
import sys
from types import FrameType

from ralph_monitor.config import Config, load_config
from ralph_monitor.ingestion.daemon import IngestionService
from ralph_monitor.logging import get_logger, setup_logging
from ralph_monitor.storage.store import MonitorStore

logger = get_logger("ingest")


def install_signal_handlers(service: IngestionService) -> None:
    """Route SIGINT/SIGTERM to a graceful shutdown of the service."""

    def signal_handler(signum: int, frame: FrameType | None) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received signal %s, shutting down", sig_name)
        service.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def run_watch_daemon(config: Config) -> None:
    """Watch the projects directory until a termination signal arrives.

    The storage handle is closed on the way out.
    """
    setup_logging(
        "ingest",
        log_dir=config.logging.log_dir,
        level=config.logging.level,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
    )

    logger.info("=== Ralph Monitor Ingestion Service ===")
    logger.info("Projects directory: %s", config.projects_dir)
    logger.info("Database: %s", config.database.path)

    with MonitorStore(config.database.path) as store:
        service = IngestionService(
            store,
            config.projects_dir,
            active_window_seconds=config.ingestion.active_window_seconds,
        )
        install_signal_handlers(service)

        try:
            service.run_watch(
                rescan_interval_seconds=config.ingestion.rescan_interval_seconds,
                stability_ms=config.ingestion.stability_ms,
                debounce_ms=config.ingestion.debounce_ms,
            )
        except KeyboardInterrupt:
            # Handle case where signal handler didn't catch it
            logger.info("Interrupted, shutting down")
            service.request_shutdown()

    logger.info("Database closed")


def main() -> None:
    """Main entry point for the watch daemon."""
    run_watch_daemon(load_config())
    sys.exit(0)


if __name__ == "__main__":
    main()
