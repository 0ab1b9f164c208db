"""
utils/loggers.py

Purpose
-------
Uniform logging for the cart editor.

Public API
----------
- get_logger(name) -> logging.Logger
- log_event(logger, op, phase, message, extra: dict = {})
"""

from __future__ import annotations

import logging
from typing import Dict

__all__ = ["get_logger", "log_event"]

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str = "pos_cart", level: int = logging.INFO) -> logging.Logger:
    """
    Return a logger with a single stream handler.
    Reuses the same logger (no duplicate handlers) across calls.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(level)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(ch)
    return logger


def log_event(
    logger: logging.Logger,
    op: str,
    phase: str,
    message: str,
    extra: Dict[str, object] | None = None,
    level: int = logging.INFO,
) -> None:
    """
    Log a structured editing event.

    Args:
        logger: Any logger; module loggers from logging.getLogger(__name__) are fine.
        op: Operation name, e.g. "commit", "allocation", "uom".
        phase: Phase within the operation, e.g. "start", "committed", "discarded".
        message: Human-readable short message.
        extra: Optional key/values (row, line id, field, values).
        level: Logging level (default INFO).
    """
    payload = {"op": op, "phase": phase}
    if extra:
        # Merge without overwriting the required keys
        for k, v in extra.items():
            if k not in payload:
                payload[k] = v
    fields = " ".join(f"{k}={v!r}" for k, v in payload.items())
    logger.log(level, "%s [%s]", message, fields, extra={"event_payload": payload})
