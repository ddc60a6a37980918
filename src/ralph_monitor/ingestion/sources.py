"""Discovery of conversation logs and identity derived from their paths.

Layout: <projects_dir>/<dash-encoded-project-path>/<session-uuid>.jsonl
"""

import re
import time
from pathlib import Path

from ralph_monitor.logging import get_logger

logger = get_logger("ingest.sources")

SESSION_ID_PATTERN = re.compile(r"([a-f0-9-]{36})\.jsonl$")
PROJECT_DIR_PATTERN = re.compile(r"projects/([^/]+)/")
LOG_SUFFIX = ".jsonl"


def extract_session_id(filename: str | Path) -> str:
    """Pull the session UUID out of a log file name.

    "e52de424-a383-4754-a265-f00cc1db9582.jsonl" gives
    "e52de424-a383-4754-a265-f00cc1db9582". Names that don't match the
    pattern are returned whole.
    """
    name = Path(filename).name
    match = SESSION_ID_PATTERN.search(name)
    return match.group(1) if match else name


def extract_project_path(file_path: str | Path) -> str:
    """Decode the project directory slug of a log file into a path.

    ".../projects/-home-user-code-project/x.jsonl" gives
    "/home/user/code/project". Every dash becomes a separator, so project
    paths that contained dashes do not survive the round trip.

    Returns:
        Decoded path, or "unknown" when the file is not under a projects dir
    """
    match = PROJECT_DIR_PATTERN.search(Path(file_path).as_posix())
    if match is None:
        return "unknown"
    return "/" + match.group(1).replace("-", "/").removeprefix("/")


def is_session_log(path: str | Path) -> bool:
    """Check whether a path looks like a conversation log."""
    return str(path).endswith(LOG_SUFFIX)


def discover_session_files(projects_dir: Path) -> list[Path]:
    """List every conversation log, one project directory deep.

    Directories that vanish or can't be read mid-scan are skipped.

    Args:
        projects_dir: Root projects directory

    Returns:
        Sorted list of log file paths
    """
    try:
        project_dirs = sorted(projects_dir.iterdir())
    except OSError:
        logger.warning("Cannot read projects directory: path=%s", projects_dir, exc_info=True)
        return []

    files: list[Path] = []
    for project_dir in project_dirs:
        try:
            if not project_dir.is_dir():
                continue
            files.extend(
                entry
                for entry in sorted(project_dir.iterdir())
                if entry.name.endswith(LOG_SUFFIX) and entry.is_file()
            )
        except OSError:
            logger.warning("Skipping unreadable project directory: path=%s", project_dir)

    logger.debug("Discovered session files: projects_dir=%s total=%d", projects_dir, len(files))
    return files


def discover_recent_session_files(
    projects_dir: Path,
    window_seconds: float,
    now: float | None = None,
) -> list[Path]:
    """List conversation logs modified within the trailing window."""
    if now is None:
        now = time.time()
    cutoff = now - window_seconds

    recent: list[Path] = []
    for path in discover_session_files(projects_dir):
        try:
            if path.stat().st_mtime > cutoff:
                recent.append(path)
        except OSError:
            continue

    return recent
