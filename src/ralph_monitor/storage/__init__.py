"""SQLite persistence for sessions, messages and tool calls."""
