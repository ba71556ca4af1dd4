# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/core/utils.py
from __future__ import annotations

import shlex
from typing import Any, Iterable, Optional


class U:
    @staticmethod
    def human_bytes(n: Optional[int]) -> str:
        if n is None:
            return "unknown"
        x = float(n)
        for unit in ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]:
            if x < 1024 or unit == "PiB":
                return f"{x:.2f} {unit}" if unit != "B" else f"{int(x)} {unit}"
            x /= 1024
        return f"{n} B"

    @staticmethod
    def pretty_cmd(cmd: Iterable[str]) -> str:
        return " ".join(shlex.quote(str(x)) for x in cmd)

    @staticmethod
    def to_text(x: Any) -> str:
        if x is None:
            return ""
        if isinstance(x, bytes):
            return x.decode("utf-8", "replace")
        return str(x)

    @staticmethod
    def one_line(s: str, limit: int = 400) -> str:
        s = " ".join((s or "").split())
        return s if len(s) <= limit else (s[: limit - 3] + "...")
