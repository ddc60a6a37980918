"""Tests for tool input previews."""

import json

import pytest

from ralph_monitor.ingestion.previews import PREVIEW_MAX_LENGTH, PreviewRegistry, json_preview


class TestBuiltinPreviews:
    """Tests for the registered tool formatters."""

    def test_bash_uses_command(self) -> None:
        assert PreviewRegistry.format("Bash", {"command": "ls -la /tmp"}) == "ls -la /tmp"

    def test_bash_truncates_long_command(self) -> None:
        command = "echo " + "a" * 300
        preview = PreviewRegistry.format("Bash", {"command": command})
        assert preview == command[:PREVIEW_MAX_LENGTH]
        assert len(preview) == 200

    def test_bash_without_command(self) -> None:
        assert PreviewRegistry.format("Bash", {}) == ""

    @pytest.mark.parametrize("tool", ["Read", "Write", "Edit"])
    def test_file_tools(self, tool: str) -> None:
        preview = PreviewRegistry.format(tool, {"file_path": "/src/app.py", "content": "x"})
        assert preview == f"{tool}: /src/app.py"

    def test_grep_with_path(self) -> None:
        preview = PreviewRegistry.format("Grep", {"pattern": "TODO", "path": "src"})
        assert preview == 'Grep: "TODO" in src'

    def test_grep_defaults_to_current_dir(self) -> None:
        assert PreviewRegistry.format("Grep", {"pattern": "x"}) == 'Grep: "x" in .'

    def test_glob(self) -> None:
        assert PreviewRegistry.format("Glob", {"pattern": "**/*.py"}) == "Glob: **/*.py"

    def test_task_prefers_description(self) -> None:
        preview = PreviewRegistry.format("Task", {"description": "Find bugs", "prompt": "long prompt"})
        assert preview == "Task: Find bugs"

    def test_task_falls_back_to_prompt(self) -> None:
        preview = PreviewRegistry.format("Task", {"prompt": "p" * 150})
        assert preview == "Task: " + "p" * 100

    def test_task_without_text(self) -> None:
        assert PreviewRegistry.format("Task", {"prompt": 5}) == "Task: "


class TestFallbackPreview:
    """Tests for tools without a dedicated formatter."""

    def test_unknown_tool_uses_json(self) -> None:
        tool_input = {"url": "https://example.com", "prompt": "summarize"}
        assert PreviewRegistry.format("WebFetch", tool_input) == json.dumps(tool_input)

    def test_unknown_tool_json_is_truncated(self) -> None:
        tool_input = {"data": "z" * 500}
        preview = PreviewRegistry.format("SomethingNew", tool_input)
        assert preview == json.dumps(tool_input)[:200]
        assert len(preview) == 200

    def test_json_preview_empty_input(self) -> None:
        assert json_preview({}) == "{}"


class TestPreviewRegistry:
    """Tests for registering formatters."""

    def test_register_new_tool(self) -> None:
        @PreviewRegistry.register("TodoWrite")
        def todo_preview(tool_input: dict) -> str:
            return f"Todos: {len(tool_input.get('todos', []))}"

        try:
            assert "TodoWrite" in PreviewRegistry.tool_names()
            assert PreviewRegistry.format("TodoWrite", {"todos": [1, 2]}) == "Todos: 2"
        finally:
            PreviewRegistry.unregister("TodoWrite")

        assert PreviewRegistry.format("TodoWrite", {"todos": []}) == '{"todos": []}'

    def test_builtin_tools_registered(self) -> None:
        names = PreviewRegistry.tool_names()
        for tool in ("Bash", "Read", "Write", "Edit", "Grep", "Glob", "Task"):
            assert tool in names
