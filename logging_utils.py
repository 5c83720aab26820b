"""Tagged logging helper for the tempo estimator.

Every message carries a level and a component tag, with optional key=value
fields appended so tick-level diagnostics stay grep-friendly. Tags in use:

  Tempo       estimate changes, resets, session summary
  Onset       per-onset flux/threshold/strength (DEBUG, once per beat)
  Scorer      winning candidate and its score (DEBUG)
  Driver      source switches, start failures, interrupts
  Microphone  capture start and stream status
  Config      load/save/migration
  Report      session report writes

Onset and Scorer lines fire at most once per detected beat, never per tick;
log_event skips formatting entirely when the level is disabled.
"""
from __future__ import annotations

import logging
from typing import Any

_logger = logging.getLogger("tempobeat")
if not _logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[%(levelname)s][%(tag)s] %(message)s")
    handler.setFormatter(formatter)
    _logger.addHandler(handler)
    _logger.setLevel(logging.INFO)


class _TagAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: dict[str, Any]):
        tag = kwargs.pop("tag", "Tempo")
        kwargs.setdefault("extra", {})["tag"] = tag
        return msg, kwargs


_logger_adapter = _TagAdapter(_logger, {})


def log_event(level: str, tag: str, message: str, **fields: Any) -> None:
    """Log a message with level+tag, appending key=value fields when provided."""
    level_name = level.upper()
    level_val = getattr(logging, level_name, logging.INFO)
    if not _logger.isEnabledFor(level_val):
        return
    if fields:
        extras = " ".join(f"{k}={v}" for k, v in fields.items())
        message = f"{message} | {extras}"
    _logger_adapter.log(level_val, message, tag=tag)


def set_log_level(level: str) -> None:
    """Set global log level (DEBUG/INFO/WARNING/ERROR)."""
    level_name = (level or "INFO").upper()
    level_val = getattr(logging, level_name, logging.INFO)
    _logger.setLevel(level_val)


def get_log_level() -> str:
    """Return current global log level name."""
    return logging.getLevelName(_logger.level)
