"""
Utility helpers for filesystem paths and configuration-driven resources.

Centralizes logic for resolving the project data directory, the snapshot
database connection string and log file paths so the CLI and library
callers stay in sync.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent
_DEFAULT_DATA_DIR_NAME = "data"
_DEFAULT_DB_FILENAME = "finance.db"


def get_project_root() -> Path:
    """Return the repository root directory."""
    return _PROJECT_ROOT


def _coerce_path(path_value: str | Path, *, allow_relative: bool = True) -> Path:
    """
    Convert a string/Path into an absolute project-root based Path.

    Args:
        path_value: Candidate filesystem path.
        allow_relative: If False, value must already be absolute.

    Returns:
        Absolute Path instance.
    """
    path = Path(path_value)
    if path.is_absolute() or not allow_relative:
        return path
    return get_project_root() / path


def get_data_dir(config: Optional[Dict[str, Any]] = None, section: str = "database") -> Path:
    """
    Resolve a data directory path without creating it.

    Args:
        config: Optional configuration dictionary.
        section: Config section holding ``data_dir`` (``database`` or ``snapshot``).

    Returns:
        Path to the data directory (may not exist yet).
    """
    section_config = (config or {}).get(section) or {}
    data_dir_raw = section_config.get("data_dir") or _DEFAULT_DATA_DIR_NAME
    return _coerce_path(data_dir_raw)


def ensure_data_dir(config: Optional[Dict[str, Any]] = None) -> Path:
    """
    Ensure the database data directory exists and return its Path.

    Args:
        config: Optional configuration dictionary.

    Returns:
        Absolute Path to the ensured data directory.
    """
    data_dir = get_data_dir(config)
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Failed to create data directory '%s': %s", data_dir, exc)
        raise
    return data_dir


def resolve_connection_string(config: Optional[Dict[str, Any]] = None) -> str:
    """
    Resolve the snapshot database connection string.

    Order of precedence:
        1. DB_CONNECTION_STRING environment variable
        2. config['database']['connection_string']
        3. SQLite file built from data_dir/path defaults

    Args:
        config: Optional configuration dictionary.

    Returns:
        SQLAlchemy connection string.
    """
    config = config or {}
    env_conn = os.environ.get("DB_CONNECTION_STRING")
    if env_conn:
        return env_conn

    db_config = config.get("database") or {}
    config_conn = db_config.get("connection_string")
    if config_conn:
        return config_conn

    db_path = Path(db_config.get("path") or _DEFAULT_DB_FILENAME)
    if not db_path.is_absolute():
        db_path = ensure_data_dir(config) / db_path

    return f"sqlite:///{db_path.as_posix()}"


def resolve_log_path(log_path: str) -> Path:
    """
    Convert a log file path to an absolute path under the project root when needed.

    Args:
        log_path: Configured log file path (relative or absolute).

    Returns:
        Absolute Path for logging output.
    """
    resolved = _coerce_path(log_path)
    if resolved.parent != resolved:
        resolved.parent.mkdir(parents=True, exist_ok=True)
    return resolved
