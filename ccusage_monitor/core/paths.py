"""
Log root discovery.

Resolves candidate log directories for each provider from environment
overrides and platform default locations.
"""

import os
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

CLAUDE_CONFIG_DIR_ENV = "CLAUDE_CONFIG_DIR"
CODEX_HOME_ENV = "CODEX_HOME"

CODEX_SESSIONS_DIRNAME = "sessions"


def _home(home: Optional[Path]) -> Path:
    return Path.home() if home is None else Path(home)


def _absolute(raw: str) -> Path:
    return Path(raw).expanduser().resolve()


def _existing_dirs(candidates: Iterable[Path]) -> List[Path]:
    return [path for path in candidates if path.is_dir()]


def _dedupe(paths: Iterable[Path]) -> List[Path]:
    seen = set()
    unique = []
    for path in paths:
        if path in seen:
            continue
        seen.add(path)
        unique.append(path)
    return unique


def claude_default_roots(home: Optional[Path] = None) -> List[Path]:
    """Platform default Claude data directories, existing or not."""
    base = _home(home)
    return [base / ".config" / "claude", base / ".claude"]


def resolve_claude_roots(
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> List[Path]:
    """Resolve Claude log roots.

    A ``CLAUDE_CONFIG_DIR`` override (comma-separated) fully replaces the
    defaults as long as at least one of its entries exists.

    Args:
        environ: Environment mapping (defaults to os.environ)
        home: Home directory (defaults to Path.home())

    Returns:
        Existing directories, in priority order
    """
    env = os.environ if environ is None else environ

    override = env.get(CLAUDE_CONFIG_DIR_ENV, "")
    if override.strip():
        segments = [segment.strip() for segment in override.split(",")]
        roots = _existing_dirs(_dedupe(_absolute(s) for s in segments if s))
        if roots:
            return roots

    return _existing_dirs(claude_default_roots(home))


def codex_session_candidates(
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> List[Path]:
    """All Codex session directories worth checking, existing or not.

    The ``CODEX_HOME`` override is added in front of the default rather
    than replacing it.
    """
    env = os.environ if environ is None else environ

    candidates = []
    override = env.get(CODEX_HOME_ENV, "").strip()
    if override:
        candidates.append(_absolute(override) / CODEX_SESSIONS_DIRNAME)
    candidates.append((_home(home) / ".codex" / CODEX_SESSIONS_DIRNAME).resolve())
    return _dedupe(candidates)


def resolve_codex_session_dirs(
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> List[Path]:
    """Existing Codex session directories."""
    return _existing_dirs(codex_session_candidates(environ, home))
