# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""
Shared logging helpers for ign2kvm pipeline stages.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Generator


def emoji_for_level(level: int) -> str:
    if level >= logging.ERROR:
        return "❌"
    if level >= logging.WARNING:
        return "⚠️"
    if level >= logging.INFO:
        return "✅"
    return "🔍"


def log_with_emoji(logger: logging.Logger, level: int, msg: str, *args: Any) -> None:
    logger.log(level, f"{emoji_for_level(level)} {msg}", *args)


@contextmanager
def log_step(logger: logging.Logger, description: str) -> Generator[None, None, None]:
    """
    Context manager for logging and timing pipeline steps.

    Logs the start of an operation, executes the block, then logs
    completion with elapsed time. Logs error and re-raises on exception.

    Example:
        with log_step(logger, "Building config-drive"):
            builder.build(payload, dest)
    """
    t0 = time.monotonic()
    log_with_emoji(logger, logging.INFO, "%s ...", description)
    try:
        yield
        log_with_emoji(logger, logging.INFO, "%s done (%.2fs)", description, time.monotonic() - t0)
    except Exception as e:
        log_with_emoji(logger, logging.ERROR, "%s failed (%.2fs): %s", description, time.monotonic() - t0, e)
        raise
