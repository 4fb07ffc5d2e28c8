"""
Logging for the plugin host.

Everything logs under the ``cadcam_plugins`` logger. Host components use
``get_logger("<component>")``; each plugin gets ``plugin_logger(plugin_id)``
so its output can be told apart from the host's.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_root_logger = logging.getLogger("cadcam_plugins")
_level_before_disable: int | None = None

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _parse_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logging(
    level: str | int = "INFO",
    format: str | None = None,
    stream: TextIO | None = None,
    file: str | None = None,
) -> None:
    """
    Send host and plugin logs to stderr (or ``stream``) and optionally a file.

    Calling it again replaces the previous handlers.

    Example:
        from cadcam_plugins.logging import setup_logging

        setup_logging("DEBUG", file="plugins.log")
    """
    level = _parse_level(level)
    _root_logger.setLevel(level)
    _root_logger.handlers.clear()

    formatter = logging.Formatter(format or DEFAULT_FORMAT)

    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(level)
    _root_logger.addHandler(stream_handler)

    if file:
        file_handler = logging.FileHandler(file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        _root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Logger for a host component, e.g. ``get_logger("plugins.manager")``."""
    if name.startswith("cadcam_plugins."):
        return logging.getLogger(name)
    return logging.getLogger(f"cadcam_plugins.{name}")


def plugin_logger(plugin_id: str) -> logging.Logger:
    """Logger handed to a plugin through its API."""
    return logging.getLogger(f"cadcam_plugins.plugin.{plugin_id}")


def set_level(level: str | int) -> None:
    _root_logger.setLevel(_parse_level(level))


def disable() -> None:
    """Silence the host and every plugin until ``enable()``."""
    global _level_before_disable
    if _level_before_disable is None:
        _level_before_disable = _root_logger.level
    _root_logger.setLevel(logging.CRITICAL + 1)


def enable() -> None:
    global _level_before_disable
    if _level_before_disable is not None:
        _root_logger.setLevel(_level_before_disable)
        _level_before_disable = None
