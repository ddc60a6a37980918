"""SQLite store for sessions, messages and tool calls.

This is the only module that touches the database. Writes are idempotent
with respect to primary keys: sessions are upserted, messages and tool
calls are inserted only if absent.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Self

from ralph_monitor.logging import get_logger
from ralph_monitor.models import Message, Session, ToolCall, ToolResult, parse_timestamp

logger = get_logger("store")

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    project_path TEXT NOT NULL,
    started_at TEXT NOT NULL,
    last_activity TEXT NOT NULL,
    jsonl_path TEXT NOT NULL,
    is_active INTEGER DEFAULT 1,
    total_messages INTEGER DEFAULT 0,
    total_tool_calls INTEGER DEFAULT 0,
    metadata TEXT
);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    parent_id TEXT,
    type TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    role TEXT,
    content_preview TEXT,
    content_full TEXT,
    model TEXT,
    stop_reason TEXT,
    input_tokens INTEGER,
    output_tokens INTEGER,
    FOREIGN KEY (session_id) REFERENCES sessions(id)
);

CREATE TABLE IF NOT EXISTS tool_calls (
    id TEXT PRIMARY KEY,
    message_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    tool_name TEXT NOT NULL,
    input_json TEXT,
    input_preview TEXT,
    output_json TEXT,
    output_preview TEXT,
    duration_ms INTEGER,
    status TEXT DEFAULT 'pending',
    error_message TEXT,
    FOREIGN KEY (message_id) REFERENCES messages(id),
    FOREIGN KEY (session_id) REFERENCES sessions(id)
);

CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id);
CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages(timestamp);
CREATE INDEX IF NOT EXISTS idx_tool_calls_session ON tool_calls(session_id);
CREATE INDEX IF NOT EXISTS idx_tool_calls_timestamp ON tool_calls(timestamp);
CREATE INDEX IF NOT EXISTS idx_tool_calls_name ON tool_calls(tool_name);
CREATE INDEX IF NOT EXISTS idx_sessions_active ON sessions(is_active);
CREATE INDEX IF NOT EXISTS idx_sessions_last_activity ON sessions(last_activity);
"""


class StoreError(Exception):
    """A database operation failed for a reason other than a duplicate key."""


class MonitorStore:
    """Persistence gateway over a single SQLite connection.

    The connection is opened lazily on first use with WAL journaling and
    foreign keys enforced. Each write commits on its own unless it runs
    inside transaction().
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file. Parent directories
                     are created on first use.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._transaction_depth = 0

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def conn(self) -> sqlite3.Connection:
        """The open connection, created on first access."""
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                conn = sqlite3.connect(self._db_path)
            except sqlite3.Error as e:
                raise StoreError(f"Cannot open database {self._db_path}: {e}") from e
            try:
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA foreign_keys=ON")
                conn.execute("PRAGMA busy_timeout=5000")
                conn.executescript(SCHEMA)
                conn.commit()
            except sqlite3.Error as e:
                conn.close()
                raise StoreError(f"Cannot open database {self._db_path}: {e}") from e
            self._conn = conn
            logger.debug("Database opened: path=%s", self._db_path)
        return self._conn

    def ensure_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        try:
            self.conn.executescript(SCHEMA)
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group writes into one commit; roll all of them back on error."""
        conn = self.conn
        self._transaction_depth += 1
        try:
            yield
        except BaseException:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                try:
                    conn.rollback()
                except sqlite3.Error:
                    logger.exception("Rollback failed: path=%s", self._db_path)
            raise
        else:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                try:
                    conn.commit()
                except sqlite3.Error as e:
                    raise StoreError(f"Commit failed: {e}") from e

    def _write(self, sql: str, params: dict[str, Any] | tuple = ()) -> sqlite3.Cursor:
        try:
            cursor = self.conn.execute(sql, params)
            if self._transaction_depth == 0:
                self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return cursor

    def _query(self, sql: str, params: dict[str, Any] | tuple = ()) -> list[dict[str, Any]]:
        conn = self.conn
        try:
            return [dict(row) for row in conn.execute(sql, params)]
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    def _query_one(self, sql: str, params: dict[str, Any] | tuple = ()) -> dict[str, Any] | None:
        rows = self._query(sql, params)
        return rows[0] if rows else None

    # Writes

    def upsert_session(self, session: Session) -> None:
        """Insert a session or refresh an existing one.

        The update path refreshes activity, source path and active flag.
        Totals and metadata left as None keep their stored values, and
        started_at is never changed once set.
        """
        self._write(
            """
            INSERT INTO sessions (
                id, project_path, started_at, last_activity, jsonl_path,
                is_active, total_messages, total_tool_calls, metadata
            )
            VALUES (
                :id, :project_path, :started_at, :last_activity, :jsonl_path,
                :is_active, COALESCE(:total_messages, 0), COALESCE(:total_tool_calls, 0), :metadata
            )
            ON CONFLICT(id) DO UPDATE SET
                last_activity = excluded.last_activity,
                jsonl_path = excluded.jsonl_path,
                is_active = excluded.is_active,
                total_messages = COALESCE(:total_messages, total_messages),
                total_tool_calls = COALESCE(:total_tool_calls, total_tool_calls),
                metadata = COALESCE(excluded.metadata, metadata)
            """,
            session.to_row(),
        )

    def insert_message(self, message: Message) -> bool:
        """Insert a message unless its id is already stored.

        Returns:
            True if a row was written, False for a duplicate id
        """
        cursor = self._write(
            """
            INSERT INTO messages (
                id, session_id, parent_id, type, timestamp, role, content_preview,
                content_full, model, stop_reason, input_tokens, output_tokens
            )
            VALUES (
                :id, :session_id, :parent_id, :type, :timestamp, :role, :content_preview,
                :content_full, :model, :stop_reason, :input_tokens, :output_tokens
            )
            ON CONFLICT(id) DO NOTHING
            """,
            message.to_row(),
        )
        return cursor.rowcount == 1

    def insert_tool_call(self, tool_call: ToolCall) -> bool:
        """Insert a tool call unless its id is already stored.

        Returns:
            True if a row was written, False for a duplicate id
        """
        cursor = self._write(
            """
            INSERT INTO tool_calls (
                id, message_id, session_id, timestamp, tool_name, input_json, input_preview,
                output_json, output_preview, duration_ms, status, error_message
            )
            VALUES (
                :id, :message_id, :session_id, :timestamp, :tool_name, :input_json, :input_preview,
                :output_json, :output_preview, :duration_ms, :status, :error_message
            )
            ON CONFLICT(id) DO NOTHING
            """,
            tool_call.to_row(),
        )
        return cursor.rowcount == 1

    def complete_tool_call(self, result: ToolResult) -> bool:
        """Attach a tool result to the invocation it answers.

        A call is completed once; re-reading its result later changes
        nothing. Duration is the gap between the call and result
        timestamps when both parse.

        Returns:
            True if the tool call exists and was completed by this result
        """
        row = self._query_one(
            "SELECT timestamp, output_json FROM tool_calls WHERE id = ?", (result.tool_use_id,)
        )
        if row is None or row["output_json"] is not None:
            return False

        duration_ms = None
        started = parse_timestamp(row["timestamp"])
        finished = parse_timestamp(result.timestamp)
        if started is not None and finished is not None and finished >= started:
            duration_ms = int((finished - started).total_seconds() * 1000)

        cursor = self._write(
            """
            UPDATE tool_calls
            SET output_json = :output_json,
                output_preview = :output_preview,
                duration_ms = :duration_ms,
                status = :status,
                error_message = :error_message
            WHERE id = :id AND output_json IS NULL
            """,
            {
                "id": result.tool_use_id,
                "output_json": result.output_json,
                "output_preview": result.output_preview,
                "duration_ms": duration_ms,
                "status": "error" if result.is_error else "success",
                "error_message": result.output_preview if result.is_error else None,
            },
        )
        return cursor.rowcount == 1

    def deactivate_stale_sessions(self, cutoff: str) -> int:
        """Clear the active flag of sessions idle since before cutoff.

        Args:
            cutoff: ISO timestamp; sessions with older last_activity go inactive

        Returns:
            Number of sessions deactivated
        """
        cursor = self._write(
            "UPDATE sessions SET is_active = 0 WHERE is_active = 1 AND last_activity < ?",
            (cutoff,),
        )
        return cursor.rowcount

    # Reads

    def get_session(self, session_id: str) -> dict[str, Any] | None:
        """Get a session row by id."""
        return self._query_one("SELECT * FROM sessions WHERE id = ?", (session_id,))

    def count_session_records(self, session_id: str) -> tuple[int, int]:
        """Count stored (messages, tool calls) of a session."""
        row = self._query_one(
            """
            SELECT
                (SELECT COUNT(*) FROM messages WHERE session_id = :id) AS messages,
                (SELECT COUNT(*) FROM tool_calls WHERE session_id = :id) AS tool_calls
            """,
            {"id": session_id},
        )
        return row["messages"], row["tool_calls"]

    def get_active_sessions(self) -> list[dict[str, Any]]:
        """Active sessions, most recent activity first."""
        return self._query(
            """
            SELECT * FROM sessions
            WHERE is_active = 1
            ORDER BY last_activity DESC
            """
        )

    def get_recent_tool_calls(self, limit: int = 50) -> list[dict[str, Any]]:
        """Most recent tool calls with their session's project path."""
        return self._query(
            """
            SELECT tc.*, s.project_path
            FROM tool_calls tc
            JOIN sessions s ON tc.session_id = s.id
            ORDER BY tc.timestamp DESC
            LIMIT ?
            """,
            (limit,),
        )

    def get_session_stats(self, session_id: str) -> dict[str, Any] | None:
        """Session row plus message/tool-call counts and message time range."""
        return self._query_one(
            """
            SELECT
                s.*,
                (SELECT COUNT(*) FROM messages m WHERE m.session_id = s.id) AS message_count,
                (SELECT COUNT(*) FROM tool_calls tc WHERE tc.session_id = s.id) AS tool_call_count,
                (SELECT MIN(m.timestamp) FROM messages m WHERE m.session_id = s.id) AS first_message,
                (SELECT MAX(m.timestamp) FROM messages m WHERE m.session_id = s.id) AS last_message
            FROM sessions s
            WHERE s.id = ?
            """,
            (session_id,),
        )

    def get_tool_calls_by_session(self, session_id: str) -> list[dict[str, Any]]:
        """Tool calls of one session in chronological order."""
        return self._query(
            """
            SELECT * FROM tool_calls
            WHERE session_id = ?
            ORDER BY timestamp ASC
            """,
            (session_id,),
        )

    def get_tool_frequency(self) -> list[dict[str, Any]]:
        """Tool names with their call counts, most used first."""
        return self._query(
            """
            SELECT tool_name, COUNT(*) AS count
            FROM tool_calls
            GROUP BY tool_name
            ORDER BY count DESC, tool_name ASC
            """
        )

    def get_totals(self, recent_since: str) -> dict[str, int] | None:
        """Global counters for dashboards.

        Args:
            recent_since: ISO timestamp bounding "recent" tool calls
        """
        return self._query_one(
            """
            SELECT
                (SELECT COUNT(*) FROM sessions WHERE is_active = 1) AS active_sessions,
                (SELECT COUNT(*) FROM messages) AS total_messages,
                (SELECT COUNT(*) FROM tool_calls) AS total_tool_calls,
                (SELECT COUNT(*) FROM tool_calls WHERE timestamp > ?) AS recent_tool_calls
            """,
            (recent_since,),
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Exit context manager, closing database connection."""
        self.close()
