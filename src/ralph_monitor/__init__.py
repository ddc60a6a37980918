"""Claude Code session monitor: log ingestion, storage and status reporting."""
