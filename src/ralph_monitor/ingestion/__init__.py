"""Ingestion of Claude Code conversation logs."""

from .parser import extract_text_preview, extract_tool_calls, parse_entry, parse_line
from .previews import PreviewRegistry
from .sources import extract_project_path, extract_session_id

__all__ = [
    "PreviewRegistry",
    "extract_project_path",
    "extract_session_id",
    "extract_text_preview",
    "extract_tool_calls",
    "parse_entry",
    "parse_line",
]
