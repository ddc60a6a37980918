"""Parser for Claude Code conversation log lines.

Claude Code stores conversations as JSONL files at:
    ~/.claude/projects/<encoded-project-path>/<session-id>.jsonl

Each line is a JSON object with:
- type: "user", "assistant", "queue-operation", "summary", ...
- uuid / parentUuid: entry identity and conversation-tree edge
- timestamp: ISO 8601 timestamp
- message.content: string (user turns) or array of content blocks
- message.model, message.stop_reason, message.usage.{input,output}_tokens
- cwd, gitBranch, permissionMode: context, not stored

Parsing never raises on bad input. Lines that are not JSON objects, and
entries that are not user/assistant turns, come back as None.
"""

import json
from typing import Any

from ralph_monitor.ingestion.previews import PREVIEW_MAX_LENGTH, PreviewRegistry
from ralph_monitor.models import (
    ContentItem,
    LogEntry,
    Message,
    MessagePayload,
    TextContent,
    ToolCall,
    ToolResult,
    ToolResultContent,
    ToolUseContent,
    utc_timestamp,
)

TEXT_PREVIEW_MAX_LENGTH = 500
TRUNCATION_MARKER = "..."


def _str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _int(value: Any) -> int | None:
    # bool is an int subclass; a flag is never a token count
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _decode_item(data: Any) -> ContentItem | None:
    if isinstance(data, str):
        return TextContent(text=data)
    if not isinstance(data, dict):
        return None

    item_type = data.get("type")
    if item_type == "text":
        return TextContent(text=_str(data.get("text")) or "")
    if item_type == "tool_use":
        tool_input = data.get("input")
        return ToolUseContent(
            id=_str(data.get("id")),
            name=_str(data.get("name")),
            input=tool_input if isinstance(tool_input, dict) else {},
        )
    if item_type == "tool_result":
        return ToolResultContent(
            tool_use_id=_str(data.get("tool_use_id")),
            content=data.get("content"),
            is_error=data.get("is_error") is True,
        )
    # thinking, image and other block types carry nothing we store
    return None


def _decode_content(raw: Any) -> str | list[ContentItem] | None:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list):
        items = (_decode_item(item) for item in raw)
        return [item for item in items if item is not None]
    return None


def _decode_message(data: dict[str, Any]) -> MessagePayload:
    usage = data.get("usage")
    if not isinstance(usage, dict):
        usage = {}

    return MessagePayload(
        content=_decode_content(data.get("content")),
        raw_content=data.get("content"),
        id=_str(data.get("id")),
        role=_str(data.get("role")),
        model=_str(data.get("model")),
        stop_reason=_str(data.get("stop_reason")),
        input_tokens=_int(usage.get("input_tokens")),
        output_tokens=_int(usage.get("output_tokens")),
    )


def parse_line(text: str) -> LogEntry | None:
    """Decode one log line into a typed entry.

    Args:
        text: Raw line text

    Returns:
        LogEntry, or None if the line is not a JSON object
    """
    try:
        data = json.loads(text)
    except (ValueError, TypeError, RecursionError):
        return None

    if not isinstance(data, dict):
        return None

    message = data.get("message")
    return LogEntry(
        type=_str(data.get("type")) or "unknown",
        uuid=_str(data.get("uuid")),
        parent_uuid=_str(data.get("parentUuid")),
        session_id=_str(data.get("sessionId")),
        timestamp=_str(data.get("timestamp")),
        message=_decode_message(message) if isinstance(message, dict) else None,
        cwd=_str(data.get("cwd")),
        git_branch=_str(data.get("gitBranch")),
        permission_mode=_str(data.get("permissionMode")),
    )


def truncate(text: str, max_length: int = TEXT_PREVIEW_MAX_LENGTH) -> str:
    """Cut text to max_length, appending the truncation marker if cut."""
    if len(text) > max_length:
        return text[:max_length] + TRUNCATION_MARKER
    return text


def extract_text_preview(
    content: str | list[ContentItem],
    max_length: int = TEXT_PREVIEW_MAX_LENGTH,
) -> str:
    """Extract a bounded text preview from message content.

    String content is used directly; for block content the text segments
    are joined with newlines. Tool blocks contribute nothing.
    """
    if isinstance(content, str):
        return truncate(content, max_length)

    text_parts = [item.text for item in content if isinstance(item, TextContent) and item.text]
    return truncate("\n".join(text_parts), max_length)


def extract_tool_calls(
    content: str | list[ContentItem],
    message_id: str,
    session_id: str,
    timestamp: str,
) -> list[ToolCall]:
    """Build ToolCall records for every tool_use block with an id and a name."""
    if isinstance(content, str):
        return []

    tool_calls: list[ToolCall] = []
    for item in content:
        if not isinstance(item, ToolUseContent) or not item.id or not item.name:
            continue

        tool_calls.append(
            ToolCall(
                id=item.id,
                message_id=message_id,
                session_id=session_id,
                timestamp=timestamp,
                tool_name=item.name,
                input_json=json.dumps(item.input, default=str),
                input_preview=PreviewRegistry.format(item.name, item.input),
            )
        )

    return tool_calls


def _result_preview(content: Any) -> str:
    if isinstance(content, str):
        return content[:PREVIEW_MAX_LENGTH]
    if isinstance(content, list):
        texts = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        if texts:
            return "\n".join(texts)[:PREVIEW_MAX_LENGTH]
    if content is None:
        return ""
    return json.dumps(content, default=str)[:PREVIEW_MAX_LENGTH]


def extract_tool_results(content: str | list[ContentItem], timestamp: str) -> list[ToolResult]:
    """Collect tool_result blocks that name the invocation they answer."""
    if isinstance(content, str):
        return []

    return [
        ToolResult(
            tool_use_id=item.tool_use_id,
            timestamp=timestamp,
            output_json=json.dumps(item.content, default=str),
            output_preview=_result_preview(item.content),
            is_error=item.is_error,
        )
        for item in content
        if isinstance(item, ToolResultContent) and item.tool_use_id
    ]


def parse_entry(entry: LogEntry, session_id: str) -> Message | None:
    """Normalize a user or assistant entry into a Message.

    The message id is the entry's uuid, else the embedded message id, else
    "<session_id>-<timestamp>". Entries without a timestamp are stamped
    with the current time but keep "unknown" in a synthesized id so that
    re-reading the same line yields the same id.

    Args:
        entry: Decoded log entry
        session_id: Owning session identifier

    Returns:
        Message with its tool calls and tool results, or None if the entry
        is not a user/assistant turn carrying a message payload
    """
    if entry.type not in ("user", "assistant"):
        return None

    payload = entry.message
    if payload is None:
        return None

    content = payload.content
    if content is None:
        content = "" if entry.type == "user" else []

    message_id = entry.uuid or payload.id or f"{session_id}-{entry.timestamp or 'unknown'}"
    timestamp = entry.timestamp or utc_timestamp()
    raw_content = payload.raw_content if payload.raw_content is not None else content

    return Message(
        id=message_id,
        session_id=session_id,
        parent_id=entry.parent_uuid,
        type=entry.type,
        timestamp=timestamp,
        role=payload.role,
        model=payload.model,
        content_preview=extract_text_preview(content),
        content_full=json.dumps(raw_content, default=str),
        input_tokens=payload.input_tokens,
        output_tokens=payload.output_tokens,
        stop_reason=payload.stop_reason,
        tool_calls=(
            extract_tool_calls(content, message_id, session_id, timestamp)
            if entry.type == "assistant"
            else []
        ),
        tool_results=extract_tool_results(content, timestamp),
    )
