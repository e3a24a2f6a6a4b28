"""
Log file discovery.

Recursively enumerates append-only JSON-lines logs under a set of roots,
newest first.
"""

import os
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import structlog

logger = structlog.get_logger()

LOG_FILE_EXTENSION = ".jsonl"


def collect_log_files(roots: Iterable[Path], limit: Optional[int] = None) -> List[Path]:
    """Collect log files below the given roots.

    Unreadable directories and files are skipped with a warning; a single
    permission error never fails the whole scan.

    Args:
        roots: Directories to scan recursively
        limit: Keep only the N most recently modified files (None = all)

    Returns:
        File paths ordered by modification time (newest first)

    Raises:
        ValueError: If limit is negative
    """
    if limit is not None and limit < 0:
        raise ValueError("limit cannot be negative")

    found: List[Tuple[float, Path]] = []
    seen = set()
    for root in roots:
        for mtime, path in _scan(Path(root)):
            if path in seen:
                continue
            seen.add(path)
            found.append((mtime, path))

    # Newest first; path as tie-breaker keeps the order deterministic
    found.sort(key=lambda item: (-item[0], str(item[1])))

    if limit is not None and len(found) > limit:
        found = found[:limit]

    return [path for _, path in found]


def _scan(root: Path) -> List[Tuple[float, Path]]:
    """Walk one root iteratively and return (mtime, path) pairs."""
    results = []
    pending = [root]
    visited = set()

    while pending:
        directory = pending.pop()
        # Symlinked directories can form cycles
        real = directory.resolve()
        if real in visited:
            continue
        visited.add(real)

        try:
            with os.scandir(directory) as listing:
                entries = list(listing)
        except OSError as e:
            logger.warning("Skipping unreadable directory", directory=str(directory), error=str(e))
            continue

        for entry in entries:
            try:
                if entry.is_dir():
                    pending.append(Path(entry.path))
                    continue
                if not entry.is_file() or not entry.name.endswith(LOG_FILE_EXTENSION):
                    continue
                mtime = entry.stat().st_mtime
            except OSError as e:
                logger.warning("Skipping unreadable log entry", path=entry.path, error=str(e))
                continue
            results.append((mtime, Path(entry.path).resolve()))

    return results
