"""Tests for the status report and the command line interface."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
from click.testing import CliRunner

from ralph_monitor.cli import cli
from ralph_monitor.logging import get_logger
from ralph_monitor.models import Message, Session, ToolCall
from ralph_monitor.status.__main__ import (
    format_relative_time,
    render_bar,
    render_status,
)
from ralph_monitor.storage.store import MonitorStore

SESSION_ID = "980dc406-0dbf-49b5-86fa-675e1e6e1998"
NOW = datetime(2026, 1, 26, 1, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path: Path):
    with MonitorStore(tmp_path / "monitor.db") as s:
        yield s


@pytest.fixture
def populated(store: MonitorStore) -> MonitorStore:
    store.upsert_session(
        Session(
            id=SESSION_ID,
            project_path="/home/user/app",
            started_at="2026-01-26T00:00:00.000Z",
            last_activity="2026-01-26T00:59:00.000Z",
            jsonl_path="/x.jsonl",
        )
    )
    store.upsert_session(
        Session(
            id="older",
            project_path="/srv/api",
            started_at="2026-01-25T00:00:00.000Z",
            last_activity="2026-01-25T22:30:00.000Z",
            jsonl_path="/y.jsonl",
        )
    )
    store.insert_message(
        Message(
            id="a-1",
            session_id=SESSION_ID,
            type="assistant",
            timestamp="2026-01-26T00:58:00.000Z",
            content_preview="",
            content_full="[]",
        )
    )
    for i, (tool, preview) in enumerate([("Bash", "npm test"), ("Bash", "ls"), ("Read", "Read: /a.py")]):
        store.insert_tool_call(
            ToolCall(
                id=f"toolu_{i}",
                message_id="a-1",
                session_id=SESSION_ID,
                timestamp=f"2026-01-26T00:58:0{i}.000Z",
                tool_name=tool,
                input_json="{}",
                input_preview=preview,
            )
        )
    return store


class TestFormatting:
    @pytest.mark.parametrize(
        ("timestamp", "expected"),
        [
            ("2026-01-26T00:59:18.000Z", "42s ago"),
            ("2026-01-26T00:30:00.000Z", "30m ago"),
            ("2026-01-25T23:55:00.000Z", "1h 5m ago"),
            ("garbage", "unknown"),
        ],
    )
    def test_relative_time(self, timestamp: str, expected: str) -> None:
        assert format_relative_time(timestamp, NOW) == expected

    def test_render_bar(self) -> None:
        assert render_bar(5, 10, width=10) == "█████░░░░░"
        assert render_bar(0, 0, width=4) == "░░░░"


class TestRenderStatus:
    """Tests for render_status."""

    def test_empty_store(self, store: MonitorStore) -> None:
        text = "\n".join(render_status(store, "http://localhost:3600", now=NOW))

        assert "No active sessions found." in text
        assert "No tool usage data." in text
        assert "No recent tool calls." in text
        assert "Dashboard: http://localhost:3600" in text

    def test_sections(self, populated: MonitorStore) -> None:
        lines = render_status(populated, "http://localhost:3600", now=NOW)
        text = "\n".join(lines)

        assert "Active Sessions" in text
        assert "(1m ago)" in text
        assert "(2h 30m ago)" in text
        assert "/srv/api" in text
        assert "npm test" in text
        assert "Read: /a.py" in text

        # Sessions are listed most recent first
        assert text.index("/home/user/app") < text.index("/srv/api")

        bash_line = next(line for line in lines if "Bash" in line and "█" in line)
        assert bash_line.rstrip().endswith(" 2")

    def test_recent_marker(self, populated: MonitorStore) -> None:
        lines = render_status(populated, "http://localhost:3600", now=NOW)

        app_line = next(line for line in lines if "app" in line and "ago" in line)
        api_line = next(line for line in lines if "api" in line and "ago" in line)
        assert "●" in app_line
        assert "○" in api_line

    def test_long_preview_cut(self, populated: MonitorStore) -> None:
        populated.insert_tool_call(
            ToolCall(
                id="toolu_long",
                message_id="a-1",
                session_id=SESSION_ID,
                timestamp="2026-01-26T00:59:00.000Z",
                tool_name="Bash",
                input_json="{}",
                input_preview="x" * 100,
            )
        )

        text = "\n".join(render_status(populated, "http://localhost:3600", now=NOW))

        assert "x" * 60 in text
        assert "x" * 61 not in text


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        f"""
projects_dir: {tmp_path}/.claude/projects
database:
  path: {tmp_path}/data/monitor.db
logging:
  log_dir: {tmp_path}/logs
"""
    )
    return path


class TestCli:
    """Tests for the ralph-monitor command group."""

    @pytest.fixture(autouse=True)
    def reset_ingest_logger(self):
        yield
        logger = get_logger("ingest")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def test_ingest(self, tmp_path: Path, config_file: Path) -> None:
        project = tmp_path / ".claude" / "projects" / "-home-user-app"
        project.mkdir(parents=True)
        lines = [
            {
                "type": "assistant",
                "uuid": "a-1",
                "timestamp": "2026-01-26T00:00:01.000Z",
                "message": {
                    "role": "assistant",
                    "content": [{"type": "tool_use", "id": "toolu_1", "name": "Bash", "input": {"command": "ls"}}],
                },
            },
            {"type": "user", "uuid": "u-1", "timestamp": "2026-01-26T00:00:02.000Z", "message": {"content": "ok"}},
        ]
        (project / f"{SESSION_ID}.jsonl").write_text("\n".join(json.dumps(line) for line in lines) + "\n")

        result = CliRunner().invoke(cli, ["--config", str(config_file), "ingest"])

        assert result.exit_code == 0, result.output
        assert f"✓ -home-user-app/{SESSION_ID}.jsonl: 2 messages, 1 tool calls" in result.output
        assert "Files processed: 1" in result.output
        assert "Total messages: 2" in result.output
        assert "Total tool calls: 1" in result.output

        with MonitorStore(tmp_path / "data" / "monitor.db") as store:
            assert store.count_session_records(SESSION_ID) == (2, 1)

    def test_ingest_missing_directory(self, tmp_path: Path, config_file: Path) -> None:
        result = CliRunner().invoke(
            cli,
            ["--config", str(config_file), "ingest", "--projects-dir", str(tmp_path / "nowhere")],
        )

        assert result.exit_code == 1
        assert "projects directory not found" in result.output

    def test_ingest_empty_directory(self, tmp_path: Path, config_file: Path) -> None:
        (tmp_path / ".claude" / "projects").mkdir(parents=True)

        result = CliRunner().invoke(cli, ["--config", str(config_file), "ingest"])

        assert result.exit_code == 0
        assert "Files processed: 0" in result.output

    def test_status(self, tmp_path: Path, config_file: Path, populated: MonitorStore) -> None:
        result = CliRunner().invoke(
            cli,
            ["--config", str(config_file), "status", "--db", str(populated.db_path)],
        )

        assert result.exit_code == 0, result.output
        assert "RALPH MONITOR - STATUS" in result.output
        assert "npm test" in result.output

    def test_status_uses_configured_database(self, config_file: Path) -> None:
        result = CliRunner().invoke(cli, ["--config", str(config_file), "status"])

        assert result.exit_code == 0, result.output
        assert "No active sessions found." in result.output

    def test_watch_delegates_to_daemon(self, tmp_path: Path, config_file: Path, monkeypatch) -> None:
        received = []
        monkeypatch.setattr("ralph_monitor.cli.run_watch_daemon", received.append)

        result = CliRunner().invoke(
            cli,
            ["--config", str(config_file), "watch", "--db", str(tmp_path / "other.db")],
        )

        assert result.exit_code == 0, result.output
        assert received[0].database.path == tmp_path / "other.db"

    def test_ingest_shows_warnings_on_console(self, tmp_path: Path, config_file: Path, monkeypatch) -> None:
        (tmp_path / ".claude" / "projects").mkdir(parents=True)

        def scan_with_skipped_dir(service):
            get_logger("ingest.sources").warning("Skipping unreadable project directory: path=%s", "/locked")
            get_logger("ingest.daemon").info("Processed file: path=%s", "/quiet.jsonl")
            return []

        monkeypatch.setattr("ralph_monitor.cli.IngestionService.run_scan", scan_with_skipped_dir)

        result = CliRunner().invoke(cli, ["--config", str(config_file), "ingest"])

        assert result.exit_code == 0, result.output
        assert "Skipping unreadable project directory: path=/locked" in result.output
        assert "/quiet.jsonl" not in result.output
        assert "/quiet.jsonl" in (tmp_path / "logs" / "ingest.log").read_text()

    def test_status_unreadable_database(self, tmp_path: Path, config_file: Path) -> None:
        db_path = tmp_path / "broken.db"
        db_path.write_bytes(b"\x00garbage" * 256)

        result = CliRunner().invoke(cli, ["--config", str(config_file), "status", "--db", str(db_path)])

        assert result.exit_code == 1
        assert "cannot read database" in result.output
