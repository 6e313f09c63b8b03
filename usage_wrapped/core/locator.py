"""
Source discovery.

Finds the data directories holding raw activity logs, honoring the
comma-separated override list before the built-in candidates.
"""

import os
from pathlib import Path
from typing import List, Mapping, Optional

from loguru import logger

from usage_wrapped.config.loader import WrappedConfig


def get_override_paths(config: WrappedConfig, environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """Split the override environment variable into non-blank path entries."""
    environ = os.environ if environ is None else environ
    raw = (environ.get(config.config_dir_env) or "").strip()
    if not raw:
        return []
    return [entry.strip() for entry in raw.split(",") if entry.strip()]


def _candidate_dirs(config: WrappedConfig, environ: Optional[Mapping[str, str]]) -> List[str]:
    overrides = get_override_paths(config, environ)
    if overrides:
        return overrides
    return list(config.data_dirs)


def _canonical(path: Path) -> Path:
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError):
        return path.absolute()


def resolve_project_roots(config: WrappedConfig, environ: Optional[Mapping[str, str]] = None) -> List[Path]:
    """Return every distinct raw-log root among the candidates.

    Overrides, when given, replace the default candidates entirely. Each
    candidate must contain the projects marker directory. Roots are
    returned in their canonical form, and two candidates resolving to the
    same real location produce one root.

    Args:
        config: Engine configuration
        environ: Environment mapping (defaults to os.environ)

    Returns:
        List of root directories, empty when nothing was found
    """
    seen = set()
    roots = []
    for candidate in _candidate_dirs(config, environ):
        projects_path = Path(candidate).expanduser() / config.projects_dir
        if not projects_path.is_dir():
            logger.debug("Skipping candidate without {}: {}", config.projects_dir, candidate)
            continue
        canonical = _canonical(projects_path)
        if canonical in seen:
            logger.debug("Skipping duplicate root {}", canonical)
            continue
        seen.add(canonical)
        roots.append(canonical)
    logger.debug("Resolved {} project root(s)", len(roots))
    return roots


def resolve_data_dir(config: WrappedConfig, environ: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    """Return the first candidate data directory holding a projects marker.

    This directory is where the stats cache and history file are read from.
    Returns None when no candidate exists.
    """
    for candidate in _candidate_dirs(config, environ):
        base = Path(candidate).expanduser()
        if (base / config.projects_dir).is_dir():
            return _canonical(base)
    return None


def has_claude_data(config: WrappedConfig, environ: Optional[Mapping[str, str]] = None) -> bool:
    """Whether any raw-log root exists."""
    return resolve_data_dir(config, environ) is not None
