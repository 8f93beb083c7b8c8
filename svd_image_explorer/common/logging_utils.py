"""Logging helpers for the image explorer."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

PROJECT_LOGGER = "svd_image_explorer"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str = PROJECT_LOGGER) -> logging.Logger:
    """Return a logger under the project hierarchy.

    The stream handler is attached once, to the project root logger, so that
    module loggers (``svd_image_explorer.rsvd.core`` and so on) propagate to
    it and ``set_log_level`` controls all of them at once.

    Parameters
    ----------
    name:
        Logger name; usually ``__name__`` of the calling module.

    Returns
    -------
    logging.Logger
        Logger instance.
    """

    root = logging.getLogger(PROJECT_LOGGER)
    if not root.handlers:
        root.setLevel(logging.INFO)
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    return logging.getLogger(name)


def set_log_level(level: Union[int, str]) -> None:
    """Set the level of the project root logger (e.g. ``"DEBUG"``)."""

    if isinstance(level, str):
        level = level.upper()
    get_logger().setLevel(level)


def append_jsonl(path: Path, record: Dict[str, Any]) -> None:
    """Append a single JSON record to a JSONL (one-JSON-per-line) file.

    Parameters
    ----------
    path:
        Destination file path.
    record:
        Mapping to be serialized as JSON on a single line.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        json.dump(record, f)
        f.write("\n")
