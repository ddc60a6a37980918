"""In-memory ingestion state: read offsets, seen message ids, in-flight files.

All of it lives for one process only. A restart starts from offset 0 and
relies on the store's insert-if-absent semantics to skip what it already has.
"""

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass


@dataclass
class FileOffset:
    """Read progress for a tracked file."""

    path: str
    last_offset: int = 0
    last_processed: float | None = None


class OffsetTracker:
    """Tracks the last-read byte offset of each log file.

    Offsets only ever move forward. A file that shrinks below its
    offset is treated as having nothing new.
    """

    def __init__(self) -> None:
        self._offsets: dict[str, FileOffset] = {}

    def get_last_offset(self, path: str) -> int:
        """Get the last read offset for a file, or 0 if not tracked."""
        state = self._offsets.get(path)
        return state.last_offset if state else 0

    def has_new_data(self, path: str, size: int) -> bool:
        """Check whether a file of the given size holds unread bytes."""
        return size > self.get_last_offset(path)

    def advance(self, path: str, offset: int, processed_at: float | None = None) -> None:
        """Move a file's offset forward.

        Raises:
            ValueError: If the new offset is behind the tracked one
        """
        current = self.get_last_offset(path)
        if offset < current:
            raise ValueError(f"Offset for {path} cannot move backwards: {offset} < {current}")
        self._offsets[path] = FileOffset(path=path, last_offset=offset, last_processed=processed_at)

    def list_files(self) -> list[FileOffset]:
        """List all tracked files."""
        return [self._offsets[path] for path in sorted(self._offsets)]

    def __len__(self) -> int:
        return len(self._offsets)


class DedupGuard:
    """Set of message ids already written during this process."""

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def add(self, message_id: str) -> None:
        self._seen.add(message_id)

    def update(self, message_ids: Iterable[str]) -> None:
        self._seen.update(message_ids)


class InFlightGuard:
    """Single-flight gate so one file is never processed re-entrantly."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    def is_in_flight(self, path: str) -> bool:
        with self._lock:
            return path in self._in_flight

    @contextmanager
    def claim(self, path: str) -> Iterator[bool]:
        """Claim a file for processing.

        Yields True if the claim succeeded, False if another caller holds it.
        """
        with self._lock:
            if path in self._in_flight:
                acquired = False
            else:
                self._in_flight.add(path)
                acquired = True

        try:
            yield acquired
        finally:
            if acquired:
                with self._lock:
                    self._in_flight.discard(path)
