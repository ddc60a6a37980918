"""Ingestion orchestrator: one-shot scan, periodic re-scan and watch mode.

Every mode funnels into IngestionService.process_file_delta(), which reads
the bytes appended to a log since the last visit, parses them, and writes
new messages and tool calls to the store.
"""

import threading
import time
from dataclasses import dataclass
from pathlib import Path

from watchfiles import Change, watch

from ralph_monitor.ingestion.parser import parse_entry, parse_line
from ralph_monitor.ingestion.sources import (
    discover_recent_session_files,
    discover_session_files,
    extract_project_path,
    extract_session_id,
    is_session_log,
)
from ralph_monitor.ingestion.state import DedupGuard, InFlightGuard, OffsetTracker
from ralph_monitor.logging import get_logger
from ralph_monitor.models import Message, Session, utc_timestamp
from ralph_monitor.storage.store import MonitorStore, StoreError

logger = get_logger("ingest.daemon")

# A session counts as active if its log was written within this window (seconds)
ACTIVE_WINDOW_SECONDS = 300

RESCAN_INTERVAL_SECONDS = 10

# Watch mode waits this long without new writes before reading a file (ms)
STABILITY_MS = 500

# Upper bound for grouping a burst of file events (ms)
DEBOUNCE_MS = 2000


@dataclass
class FileReport:
    """Outcome of processing one file."""

    path: Path
    session_id: str
    messages: int = 0
    tool_calls: int = 0
    tool_results: int = 0
    bytes_read: int = 0
    skipped: bool = False  # another caller held the file
    error: str | None = None

    @property
    def changed(self) -> bool:
        return bool(self.messages or self.tool_calls or self.tool_results)


def summarize(reports: list[FileReport]) -> dict[str, int]:
    """Aggregate counts over a scan.

    Returns:
        Dict with counts: {"files": N, "changed": C, "messages": M,
        "tool_calls": T, "failed": F}
    """
    return {
        "files": len(reports),
        "changed": sum(1 for r in reports if r.changed),
        "messages": sum(r.messages for r in reports),
        "tool_calls": sum(r.tool_calls for r in reports),
        "failed": sum(1 for r in reports if r.error is not None),
    }


def log_file_filter(change: Change, path: str) -> bool:
    """watchfiles filter: only created or modified conversation logs."""
    return change in (Change.added, Change.modified) and is_session_log(path)


class IngestionService:
    """Owns the offset map, dedup set and single-flight gate of one run.

    Independent instances share nothing, so tests and concurrent runs
    never see each other's progress.
    """

    def __init__(
        self,
        store: MonitorStore,
        projects_dir: Path,
        active_window_seconds: float = ACTIVE_WINDOW_SECONDS,
    ) -> None:
        self.store = store
        self.projects_dir = projects_dir
        self.active_window_seconds = active_window_seconds
        self.offsets = OffsetTracker()
        self.dedup = DedupGuard()
        self.in_flight = InFlightGuard()
        self._shutdown = threading.Event()

    # Shutdown handling

    def request_shutdown(self) -> None:
        """Ask running loops to stop after the current file."""
        self._shutdown.set()

    def is_shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    def reset_shutdown(self) -> None:
        self._shutdown.clear()

    # Shared step

    def process_file_delta(self, path: Path, session_id: str | None = None) -> FileReport:
        """Ingest the bytes appended to a log file since the last visit.

        Args:
            path: Log file path
            session_id: Owning session id (derived from the file name if omitted)

        Returns:
            FileReport with the number of rows written

        Raises:
            OSError: If the file can't be read
            StoreError: If a write fails; the offset is left where it was
        """
        if session_id is None:
            session_id = extract_session_id(path)

        with self.in_flight.claim(str(path)) as acquired:
            if not acquired:
                logger.debug("File already being processed: path=%s", path)
                return FileReport(path=path, session_id=session_id, skipped=True)
            return self._process(path, session_id)

    def _read_delta(self, path: Path, offset: int, size: int) -> bytes:
        with open(path, "rb") as f:
            f.seek(offset)
            return f.read(size - offset)

    def _parse_delta(self, data: bytes, session_id: str) -> list[Message]:
        messages: list[Message] = []
        for raw_line in data.split(b"\n"):
            line = raw_line.decode("utf-8", errors="replace").strip()
            if not line:
                continue

            entry = parse_line(line)
            if entry is None:
                continue

            message = parse_entry(entry, session_id)
            if message is not None:
                messages.append(message)
        return messages

    def _process(self, path: Path, session_id: str) -> FileReport:
        report = FileReport(path=path, session_id=session_id)
        key = str(path)

        stat = path.stat()
        offset = self.offsets.get_last_offset(key)
        if not self.offsets.has_new_data(key, stat.st_size):
            return report

        data = self._read_delta(path, offset, stat.st_size)
        report.bytes_read = len(data)
        messages = self._parse_delta(data, session_id)

        now = time.time()
        project_path = extract_project_path(path)
        file_activity = utc_timestamp(stat.st_mtime)

        batch_ids: set[str] = set()
        last_timestamp: str | None = None

        with self.store.transaction():
            # The session row must exist before any message references it
            self.store.upsert_session(
                Session(
                    id=session_id,
                    project_path=project_path,
                    started_at=messages[0].timestamp if messages else file_activity,
                    last_activity=file_activity,
                    jsonl_path=key,
                    is_active=now - stat.st_mtime < self.active_window_seconds,
                )
            )

            for message in messages:
                if message.id in self.dedup or message.id in batch_ids:
                    continue
                batch_ids.add(message.id)

                if self.store.insert_message(message):
                    report.messages += 1
                for tool_call in message.tool_calls:
                    if self.store.insert_tool_call(tool_call):
                        report.tool_calls += 1
                for result in message.tool_results:
                    if self.store.complete_tool_call(result):
                        report.tool_results += 1
                last_timestamp = message.timestamp

            if report.changed:
                total_messages, total_tool_calls = self.store.count_session_records(session_id)
                self.store.upsert_session(
                    Session(
                        id=session_id,
                        project_path=project_path,
                        started_at=messages[0].timestamp,
                        last_activity=last_timestamp or file_activity,
                        jsonl_path=key,
                        is_active=True,
                        total_messages=total_messages,
                        total_tool_calls=total_tool_calls,
                    )
                )

        self.dedup.update(batch_ids)
        self.offsets.advance(key, offset + len(data), processed_at=now)

        if report.changed:
            logger.info(
                "Processed file: path=%s messages=+%d tool_calls=+%d tool_results=%d",
                path,
                report.messages,
                report.tool_calls,
                report.tool_results,
            )
        return report

    def _process_safely(self, path: Path) -> FileReport:
        try:
            return self.process_file_delta(path)
        except StoreError as e:
            logger.exception("Error storing records: path=%s", path)
            return FileReport(path=path, session_id=extract_session_id(path), error=str(e))
        except OSError as e:
            logger.warning("Cannot read file: path=%s error=%s", path, e)
            return FileReport(path=path, session_id=extract_session_id(path), error=str(e))

    # Drive modes

    def run_scan(self, paths: list[Path] | None = None) -> list[FileReport]:
        """Process every log under the projects directory once.

        A failing file is logged and reported; the scan carries on.

        Args:
            paths: Files to process (defaults to all discovered logs)

        Returns:
            One FileReport per file visited
        """
        if paths is None:
            paths = discover_session_files(self.projects_dir)

        reports: list[FileReport] = []
        for path in paths:
            if self.is_shutdown_requested():
                break
            reports.append(self._process_safely(path))
        return reports

    def run_rescan(self, now: float | None = None) -> list[FileReport]:
        """Re-visit recently modified logs and expire idle sessions.

        Safety net for missed watch events.
        """
        if now is None:
            now = time.time()

        recent = discover_recent_session_files(self.projects_dir, self.active_window_seconds, now=now)
        reports = self.run_scan(recent)

        try:
            expired = self.store.deactivate_stale_sessions(utc_timestamp(now - self.active_window_seconds))
        except StoreError:
            logger.exception("Error expiring idle sessions")
        else:
            if expired:
                logger.info("Marked sessions inactive: count=%d", expired)

        return reports

    def _wait(self, seconds: float) -> None:
        self._shutdown.wait(seconds)

    def _watch_changes(
        self,
        rescan_interval_seconds: float,
        stability_ms: int,
        debounce_ms: int,
    ) -> None:
        last_rescan = time.monotonic()

        for changes in watch(
            self.projects_dir,
            watch_filter=log_file_filter,
            debounce=max(debounce_ms, stability_ms),
            step=stability_ms,
            stop_event=self._shutdown,
            rust_timeout=int(rescan_interval_seconds * 1000),
            yield_on_timeout=True,
        ):
            for path in sorted({Path(path_str) for _, path_str in changes}):
                if self.is_shutdown_requested():
                    return
                self._process_safely(path)

            if self.is_shutdown_requested():
                return

            if time.monotonic() - last_rescan >= rescan_interval_seconds:
                self.run_rescan()
                last_rescan = time.monotonic()

    def run_watch(
        self,
        rescan_interval_seconds: float = RESCAN_INTERVAL_SECONDS,
        stability_ms: int = STABILITY_MS,
        debounce_ms: int = DEBOUNCE_MS,
    ) -> None:
        """Run continuous ingestion until shutdown is requested.

        Does a full scan, then reacts to file events with a periodic
        re-scan as backstop. A missing projects directory is re-checked
        every rescan interval rather than treated as fatal.
        """
        logger.info(
            "Starting watch: projects_dir=%s rescan_interval=%ss stability=%dms",
            self.projects_dir,
            rescan_interval_seconds,
            stability_ms,
        )

        waiting_logged = False
        while not self.is_shutdown_requested():
            if not self.projects_dir.is_dir():
                if not waiting_logged:
                    logger.warning("Projects directory not found, waiting: path=%s", self.projects_dir)
                    waiting_logged = True
                self._wait(rescan_interval_seconds)
                continue
            waiting_logged = False

            totals = summarize(self.run_scan())
            logger.info(
                "Initial scan complete: files=%d messages=%d tool_calls=%d failed=%d",
                totals["files"],
                totals["messages"],
                totals["tool_calls"],
                totals["failed"],
            )
            if self.is_shutdown_requested():
                break

            try:
                self._watch_changes(rescan_interval_seconds, stability_ms, debounce_ms)
            except OSError:
                logger.warning("Watcher stopped, restarting: path=%s", self.projects_dir, exc_info=True)
                self._wait(rescan_interval_seconds)

        logger.info("Watch stopped")
