"""Human-readable previews of tool inputs.

Each tool name maps to a formatter taking the tool's input dictionary.
Tools without a registered formatter fall back to truncated JSON.
"""

import json
from collections.abc import Callable
from typing import Any

PREVIEW_MAX_LENGTH = 200
PROMPT_PREVIEW_LENGTH = 100

PreviewFormatter = Callable[[dict[str, Any]], str]


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def json_preview(tool_input: dict[str, Any]) -> str:
    """Fallback preview: the serialized input, cut to PREVIEW_MAX_LENGTH."""
    return json.dumps(tool_input, default=str)[:PREVIEW_MAX_LENGTH]


class PreviewRegistry:
    """Registry of preview formatters by tool name."""

    _formatters: dict[str, PreviewFormatter] = {}
    _fallback: PreviewFormatter = staticmethod(json_preview)

    @classmethod
    def register(cls, *tool_names: str) -> Callable[[PreviewFormatter], PreviewFormatter]:
        """Decorator registering a formatter for one or more tool names."""

        def decorator(formatter: PreviewFormatter) -> PreviewFormatter:
            for name in tool_names:
                cls._formatters[name] = formatter
            return formatter

        return decorator

    @classmethod
    def unregister(cls, tool_name: str) -> None:
        """Remove a tool's formatter so it uses the fallback again."""
        cls._formatters.pop(tool_name, None)

    @classmethod
    def get(cls, tool_name: str) -> PreviewFormatter:
        """Get the formatter for a tool, or the fallback."""
        return cls._formatters.get(tool_name, cls._fallback)

    @classmethod
    def tool_names(cls) -> list[str]:
        """List all tool names with a dedicated formatter."""
        return list(cls._formatters.keys())

    @classmethod
    def format(cls, tool_name: str, tool_input: dict[str, Any]) -> str:
        """Build the preview string for one invocation."""
        return cls.get(tool_name)(tool_input)


@PreviewRegistry.register("Bash")
def bash_preview(tool_input: dict[str, Any]) -> str:
    return _text(tool_input.get("command"))[:PREVIEW_MAX_LENGTH]


def _file_preview(verb: str) -> PreviewFormatter:
    def formatter(tool_input: dict[str, Any]) -> str:
        return f"{verb}: {_text(tool_input.get('file_path'))}"

    formatter.__name__ = f"{verb.lower()}_preview"
    return formatter


read_preview = PreviewRegistry.register("Read")(_file_preview("Read"))
write_preview = PreviewRegistry.register("Write")(_file_preview("Write"))
edit_preview = PreviewRegistry.register("Edit")(_file_preview("Edit"))


@PreviewRegistry.register("Grep")
def grep_preview(tool_input: dict[str, Any]) -> str:
    path = _text(tool_input.get("path")) or "."
    return f'Grep: "{_text(tool_input.get("pattern"))}" in {path}'


@PreviewRegistry.register("Glob")
def glob_preview(tool_input: dict[str, Any]) -> str:
    return f"Glob: {_text(tool_input.get('pattern'))}"


@PreviewRegistry.register("Task")
def task_preview(tool_input: dict[str, Any]) -> str:
    description = _text(tool_input.get("description"))
    if not description:
        prompt = tool_input.get("prompt")
        description = prompt[:PROMPT_PREVIEW_LENGTH] if isinstance(prompt, str) else ""
    return f"Task: {description}"
