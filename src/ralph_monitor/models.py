"""Typed records flowing through the ingestion pipeline.

Log entries are decoded into these shapes at the parse boundary, so the
rest of the pipeline never touches raw JSON dictionaries.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

MessageType = Literal["user", "assistant"]
ToolCallStatus = Literal["pending", "success", "error"]


@dataclass(frozen=True)
class TextContent:
    """A text segment of a message."""

    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ToolUseContent:
    """A tool invocation requested by the assistant."""

    id: str | None
    name: str | None
    input: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = "tool_use"


@dataclass(frozen=True)
class ToolResultContent:
    """The outcome of a tool invocation, reported back in a later user turn."""

    tool_use_id: str | None
    content: Any = None
    is_error: bool = False
    type: Literal["tool_result"] = "tool_result"


ContentItem = TextContent | ToolUseContent | ToolResultContent


@dataclass
class MessagePayload:
    """The embedded `message` object of a log entry."""

    content: str | list[ContentItem] | None
    raw_content: Any = None  # Content exactly as it appeared in the log
    id: str | None = None
    role: str | None = None
    model: str | None = None
    stop_reason: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None


@dataclass
class LogEntry:
    """One decoded line of a conversation log."""

    type: str  # user, assistant, queue-operation, summary, ...
    uuid: str | None = None
    parent_uuid: str | None = None
    session_id: str | None = None
    timestamp: str | None = None
    message: MessagePayload | None = None
    cwd: str | None = None
    git_branch: str | None = None
    permission_mode: str | None = None


@dataclass
class ToolCall:
    """One tool invocation embedded within an assistant message."""

    id: str
    message_id: str
    session_id: str
    timestamp: str
    tool_name: str
    input_json: str
    input_preview: str
    output_json: str | None = None
    output_preview: str | None = None
    duration_ms: int | None = None
    status: ToolCallStatus = "success"
    error_message: str | None = None

    def to_row(self) -> dict[str, Any]:
        """Convert to named parameters for the tool_calls table."""
        return {
            "id": self.id,
            "message_id": self.message_id,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "tool_name": self.tool_name,
            "input_json": self.input_json,
            "input_preview": self.input_preview,
            "output_json": self.output_json,
            "output_preview": self.output_preview,
            "duration_ms": self.duration_ms,
            "status": self.status,
            "error_message": self.error_message,
        }


@dataclass
class ToolResult:
    """A tool_result segment, keyed by the invocation it answers."""

    tool_use_id: str
    timestamp: str
    output_json: str
    output_preview: str
    is_error: bool = False


@dataclass
class Message:
    """A normalized user or assistant turn."""

    id: str
    session_id: str
    type: MessageType
    timestamp: str
    content_preview: str
    content_full: str
    parent_id: str | None = None
    role: str | None = None
    model: str | None = None
    stop_reason: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)

    def to_row(self) -> dict[str, Any]:
        """Convert to named parameters for the messages table."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "parent_id": self.parent_id,
            "type": self.type,
            "timestamp": self.timestamp,
            "role": self.role,
            "content_preview": self.content_preview,
            "content_full": self.content_full,
            "model": self.model,
            "stop_reason": self.stop_reason,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }


@dataclass
class Session:
    """One conversation, backed by one log file."""

    id: str
    project_path: str
    started_at: str
    last_activity: str
    jsonl_path: str
    is_active: bool = True
    total_messages: int | None = None  # None leaves stored totals untouched
    total_tool_calls: int | None = None
    metadata: dict[str, Any] | None = None

    def to_row(self) -> dict[str, Any]:
        """Convert to named parameters for the sessions table."""
        return {
            "id": self.id,
            "project_path": self.project_path,
            "started_at": self.started_at,
            "last_activity": self.last_activity,
            "jsonl_path": self.jsonl_path,
            "is_active": 1 if self.is_active else 0,
            "total_messages": self.total_messages,
            "total_tool_calls": self.total_tool_calls,
            "metadata": json.dumps(self.metadata) if self.metadata is not None else None,
        }


def utc_timestamp(epoch: float | None = None) -> str:
    """Format an epoch (default: now) the way log entries stamp their records.

    Example: "2026-01-26T00:38:34.590Z"
    """
    moment = datetime.now(timezone.utc) if epoch is None else datetime.fromtimestamp(epoch, timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(timestamp_str: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp, returning None when it is unusable."""
    if not timestamp_str or not isinstance(timestamp_str, str):
        return None

    try:
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        dt = datetime.fromisoformat(timestamp_str)
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
