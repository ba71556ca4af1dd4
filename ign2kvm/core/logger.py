# SPDX-License-Identifier: LGPL-3.0-or-later
# ign2kvm/core/logger.py
"""
Console logging for the provisioning pipeline.

Records may carry a context dict (`extra={"ctx": {...}}`, or a logger bound
with `Log.bind`). The formatter renders it after the message, pipeline keys
first:

    12:04:31 ✅ INFO     Uploading /tmp/worker-0-ign-x1.iso [volume=worker-0-ign pool=default]
"""
from __future__ import annotations

import datetime as _dt
import logging
import sys
from typing import Any, Dict, Mapping, Optional, Tuple

try:
    from termcolor import colored as _colored  # type: ignore
except Exception:  # pragma: no cover
    _colored = None

_LEVELS = {
    # levelname: (emoji, colour)
    "DEBUG": ("🔍", "blue"),
    "INFO": ("✅", "green"),
    "WARNING": ("⚠️", "yellow"),
    "ERROR": ("💥", "red"),
    "CRITICAL": ("🧨", "red"),
}

# rendered first, in this order; other keys follow alphabetically
_CTX_ORDER = ("volume", "pool", "image", "step")


def c(text: str, color: Optional[str] = None, *, bold: bool = False, enable: bool = True) -> str:
    """Colour text with termcolor when enabled and available."""
    if not enable or _colored is None or not color:
        return text
    return _colored(text, color=color, attrs=["bold"] if bold else [])


def _ctx_text(ctx: Optional[Mapping[str, Any]]) -> str:
    if not ctx:
        return ""
    keys = [k for k in _CTX_ORDER if k in ctx]
    keys += sorted(k for k in ctx if k not in _CTX_ORDER)
    pairs = []
    for k in keys:
        v = str(ctx[k]).replace("\n", "\\n")
        pairs.append(f"{k}={v[:237] + '...' if len(v) > 240 else v}")
    return " [" + " ".join(pairs) + "]"


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger that stamps a fixed context on every record.

      log = Log.bind(logger, volume="worker-0-ign", pool="default")
      log.info("Declaring volume")
    """

    def __init__(self, logger: logging.Logger, ctx: Optional[Mapping[str, Any]] = None):
        super().__init__(logger, extra={"ctx": dict(ctx or {})})

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["ctx"] = {**self.extra["ctx"], **(extra.get("ctx") or {})}
        kwargs["extra"] = extra
        return msg, kwargs


class EmojiFormatter(logging.Formatter):
    def __init__(self, *, color: bool = True, show_ms: bool = False):
        super().__init__()
        self.color = color
        self.show_ms = show_ms

    def format(self, record: logging.LogRecord) -> str:
        ts = _dt.datetime.fromtimestamp(record.created)
        stamp = ts.strftime("%H:%M:%S.%f")[:-3] if self.show_ms else ts.strftime("%H:%M:%S")
        emoji, colour = _LEVELS.get(record.levelname, ("•", None))
        on = self.color and sys.stderr.isatty()

        msg = record.getMessage()
        if record.levelno >= logging.WARNING:
            msg = c(msg, colour, bold=True, enable=on)
        line = f"{stamp} {emoji} {c(record.levelname, colour, enable=on):<8} {msg}{_ctx_text(getattr(record, 'ctx', None))}"

        if record.exc_info:
            tb = "\n".join("  " + ln for ln in self.formatException(record.exc_info).splitlines())
            line += "\n" + c(tb, "red", enable=on)
        return line


class Log:
    @staticmethod
    def _level_from_flags(verbose: int, quiet: int) -> int:
        """-q WARNING, -qq ERROR, -v DEBUG; quiet wins."""
        if quiet >= 2:
            return logging.ERROR
        if quiet == 1:
            return logging.WARNING
        return logging.DEBUG if verbose >= 1 else logging.INFO

    @staticmethod
    def bind(logger: logging.Logger, **ctx: Any) -> ContextLoggerAdapter:
        return ContextLoggerAdapter(logger, ctx)

    @staticmethod
    def step(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("➡️  %s", msg, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def ok(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("✅ %s", msg, extra={"ctx": ctx} if ctx else None)

    @staticmethod
    def setup(
        verbose: int = 0,
        *,
        quiet: int = 0,
        color: bool = True,
        logger_name: str = "ign2kvm",
    ) -> logging.Logger:
        """Attach a single stderr handler to the project logger and return it."""
        logger = logging.getLogger(logger_name)
        logger.propagate = False
        level = Log._level_from_flags(verbose, quiet)
        logger.setLevel(level)

        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()

        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(EmojiFormatter(color=color, show_ms=verbose >= 2))
        logger.addHandler(handler)

        logger.debug("Logging at %s", logging.getLevelName(level))
        return logger
