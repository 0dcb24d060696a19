"""Minimal structured logging helper.

Emits key=value pairs (or one JSON object per line) with a timestamp, level
and logger name. Generation code logs through this helper so that a batch of
dungeon requests can be grepped by event name.

Usage:
    from delve.logging_utils import get_logger
    log = get_logger("delve.dungeon.bsp")
    log.info(event="partition_failure", region=(0, 0, 7, 3))

Non-numeric values are str()'d with spaces replaced by underscores.
Reserved keys: level, ts, logger. A reserved key passed as a field is dropped
(logger excepted, which overrides the logger name).

Environment:
    DELVE_LOG_LEVEL   debug | info | warn | error   (default: info)
    DELVE_LOG_JSON    1/true/yes/on switches to JSON lines
    DELVE_LOG_STREAM  stdout | stderr   (default: stdout; errors always go to stderr)
"""

from __future__ import annotations

import json
import os
import sys
import time

LEVELS = {"debug": 10, "info": 20, "warn": 30, "error": 40}


def _current_level() -> int:
    return LEVELS.get(os.getenv("DELVE_LOG_LEVEL", "info").lower(), 20)


def _json_mode() -> bool:
    return os.getenv("DELVE_LOG_JSON", "0") in ("1", "true", "TRUE", "yes", "on")


_RESERVED = ("level", "ts")


def _stream(lvl: str):
    if lvl == "error" or os.getenv("DELVE_LOG_STREAM", "stdout").lower() == "stderr":
        return sys.stderr
    return sys.stdout


def _format(level: str, /, **fields) -> str:
    fields = {k: v for k, v in fields.items() if k not in _RESERVED}
    if _json_mode():
        rec = {k: v for k, v in fields.items() if v is not None}
        rec["level"] = level
        rec["ts"] = int(time.time())
        return json.dumps(rec, separators=(",", ":"), default=str)
    parts = [f"level={level}", f"ts={int(time.time())}"]
    for k, v in fields.items():
        if v is None:
            continue
        if isinstance(v, (int, float)):
            parts.append(f"{k}={v}")
        else:
            s = str(v).replace(" ", "_")
            parts.append(f"{k}={s}")
    return " ".join(parts)


class _Logger:
    def __init__(self, name: str | None = None):
        self.name = name or "delve"

    def _log(self, lvl: str, /, **fields):
        if LEVELS[lvl] < _current_level():
            return
        if "logger" not in fields:
            fields["logger"] = self.name
        print(_format(lvl, **fields), file=_stream(lvl))

    def debug(self, **fields):
        self._log("debug", **fields)

    def info(self, **fields):
        self._log("info", **fields)

    def warn(self, **fields):
        self._log("warn", **fields)

    def error(self, **fields):
        self._log("error", **fields)


_LOGGER_CACHE: dict[str, _Logger] = {}


def get_logger(name: str) -> _Logger:
    if name not in _LOGGER_CACHE:
        _LOGGER_CACHE[name] = _Logger(name)
    return _LOGGER_CACHE[name]


log = get_logger("delve")
