"""Process-wide configuration, parsed once per file and re-read when the file changes."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from icreactor.config.loader import get_config_path, load_config
from icreactor.config.schema import ReactorConfig

_lock = threading.RLock()


@dataclass(slots=True)
class _Entry:
    config: ReactorConfig
    # None while the file does not exist.
    mtime_ns: int | None


_entries: dict[Path, _Entry] = {}


def _resolve(config_path: Path | str | None) -> Path:
    return Path(config_path or get_config_path()).expanduser().resolve()


def _mtime_ns(path: Path) -> int | None:
    try:
        return path.stat().st_mtime_ns
    except FileNotFoundError:
        return None


def get_config(*, config_path: Path | str | None = None, force_reload: bool = False) -> ReactorConfig:
    """
    Shared configuration for ``config_path`` (default: :func:`get_config_path`).

    The parsed config is cached per resolved path. A cached entry is replaced
    when the file's modification time changes, including when the file is
    created or deleted after the first read.
    """
    path = _resolve(config_path)
    mtime = _mtime_ns(path)
    with _lock:
        entry = _entries.get(path)
        if force_reload or entry is None or entry.mtime_ns != mtime:
            if entry is not None:
                logger.debug("Reloading config from {}", path)
            entry = _Entry(load_config(path), mtime)
            _entries[path] = entry
        return entry.config


def clear_config_cache(*, config_path: Path | str | None = None) -> None:
    """Forget one cached file, or every cached file when no path is given."""
    with _lock:
        if config_path is None:
            _entries.clear()
        else:
            _entries.pop(_resolve(config_path), None)
