"""Loguru helpers: the package is silent until a host application enables it.

Only sinks added here are ever removed here; sinks the host application
installed on the shared loguru logger are left alone.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

PACKAGE = "icreactor"
STDERR_FORMAT = "<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | <level>{message}</level>"

_stderr_sink_id: int | None = None
_file_sink_ids: dict[str, int] = {}


def _remove_sink(sink_id: int) -> None:
    try:
        logger.remove(sink_id)
    except ValueError:
        # Already removed by the host (e.g. a blanket logger.remove()).
        logger.debug("Sink {} was already removed", sink_id)


def enable_logging(level: str | None = None) -> None:
    """
    Enable icreactor logs on a compact stderr sink.

    Calling it again replaces the sink added by the previous call. ``level``
    defaults to the configured ``log_level``.
    """
    global _stderr_sink_id
    if level is None:
        from icreactor.config.access import get_config

        level = get_config().log_level
    if _stderr_sink_id is not None:
        _remove_sink(_stderr_sink_id)
    _stderr_sink_id = logger.add(sys.stderr, level=level, format=STDERR_FORMAT, filter=PACKAGE)
    logger.enable(PACKAGE)


def disable_logging() -> None:
    """Silence icreactor and drop the sinks added by this module."""
    global _stderr_sink_id
    logger.disable(PACKAGE)
    if _stderr_sink_id is not None:
        _remove_sink(_stderr_sink_id)
        _stderr_sink_id = None
    for sink_id in _file_sink_ids.values():
        _remove_sink(sink_id)
    _file_sink_ids.clear()


def add_file_sink(path: Path | str, level: str = "INFO") -> Path:
    """Add (once per path) a rotating file sink for icreactor logs."""
    log_path = Path(path).expanduser()
    key = str(log_path)
    if key in _file_sink_ids:
        return log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        key,
        level=level,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
        filter=PACKAGE,
    )
    _file_sink_ids[key] = sink_id
    logger.enable(PACKAGE)
    return log_path
