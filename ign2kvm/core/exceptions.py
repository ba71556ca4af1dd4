# SPDX-License-Identifier: LGPL-3.0-or-later
# ign2kvm/core/exceptions.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence


def _safe_int(x: Any, default: int = 1) -> int:
    try:
        return int(x)
    except Exception:
        return default


def _clamp_exit_code(code: int) -> int:
    if code < 0:
        return 1
    if code > 255:
        return 255
    return code


def _one_line(s: str, limit: int = 600) -> str:
    s = (s or "").strip().replace("\r", " ").replace("\n", " ")
    s = " ".join(s.split())
    return s if len(s) <= limit else (s[: limit - 3] + "...")


_SECRET_KEY_PARTS = (
    "pass",
    "password",
    "secret",
    "token",
    "user_data",
    "userdata",
    "content",
    "key_material",
)


def _is_secret_key(k: str) -> bool:
    ks = (k or "").lower()
    return any(p in ks for p in _SECRET_KEY_PARTS)


def _redact(ctx: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("***REDACTED***" if _is_secret_key(str(k)) else v) for k, v in ctx.items()}


def _format_context_compact(ctx: Dict[str, Any]) -> str:
    parts = []
    for k in sorted(ctx.keys()):
        v = ctx.get(k)
        if _is_secret_key(str(k)):
            parts.append(f"{k}=<redacted>")
        else:
            parts.append(f"{k}={v!r}")
    return ", ".join(parts)


@dataclass(eq=False)
class Ign2KvmError(Exception):
    """
    Base project error with:
      - stable fields for reporting/JSON
      - readable __str__ (what users see)
      - context that is redacted before it leaves the process
    """
    code: int = 1
    msg: str = "error"
    cause: Optional[BaseException] = None
    context: Optional[Dict[str, Any]] = None

    _MSG_LIMIT = 600

    def __post_init__(self) -> None:
        self.code = _clamp_exit_code(_safe_int(self.code, default=1))
        self.msg = _one_line(self.msg, limit=self._MSG_LIMIT) or self.__class__.__name__
        if self.context is None:
            self.context = {}
        super().__init__(self.msg)
        self.args = (self.msg,)

    def with_context(self, **ctx: Any) -> "Ign2KvmError":
        self.context.update(ctx)
        return self

    def user_message(self, *, include_context: bool = False, include_cause: bool = False) -> str:
        base = self.msg or self.__class__.__name__
        parts = [base]

        if include_context and self.context:
            parts.append(f"[{_one_line(_format_context_compact(self.context), limit=600)}]")

        if include_cause and self.cause is not None:
            parts.append(f"(cause: {type(self.cause).__name__}: {_one_line(str(self.cause))})")

        return " ".join(parts)

    def __str__(self) -> str:
        return self.user_message(include_context=False, include_cause=False)

    def to_dict(self, *, include_cause: bool = False) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "code": self.code,
            "message": self.msg,
            "context": _redact(self.context or {}),
        }
        if include_cause and self.cause is not None:
            d["cause"] = {"type": type(self.cause).__name__, "message": _one_line(str(self.cause))}
        return d


class ConfigError(Ign2KvmError):
    """Invalid or unreadable configuration."""
    pass


class SecretError(Ign2KvmError):
    """The user-data secret, or its userData key, could not be retrieved."""
    pass


class ConfigDriveError(Ign2KvmError):
    """Building the config-drive ISO failed."""

    # carries the ISO tool output verbatim
    _MSG_LIMIT = 64 * 1024


class StorageError(Ign2KvmError):
    """
    Storage backend operation failed (declare / stream / lookup / delete).
    """
    pass


class ProtocolError(Ign2KvmError):
    """A guestfish reply could not be parsed."""
    pass


class SessionStateError(Ign2KvmError):
    """A guestfish command was issued in a session state that does not allow it."""
    pass


class InjectionError(Ign2KvmError):
    pass


class CommandError(Ign2KvmError):
    """
    External command failed to start, exited non-zero, timed out or was cancelled.

    `cmd` is the exact argument vector that was executed (after elevation),
    `output` the merged stdout/stderr captured so far.
    """

    def __init__(
        self,
        msg: str,
        *,
        cmd: Sequence[str] = (),
        returncode: Optional[int] = None,
        output: str = "",
        cause: Optional[BaseException] = None,
        code: int = 1,
    ) -> None:
        self.cmd: List[str] = list(cmd)
        self.returncode = returncode
        self.output = output or ""
        super().__init__(code=code, msg=msg, cause=cause, context={"cmd": " ".join(self.cmd)})


class CommandTimeout(CommandError):
    pass


class CommandCancelled(CommandError):
    pass


def format_exception_for_cli(e: BaseException, *, verbose: int = 0) -> str:
    """
    One-liner output for CLI.

    verbose=0: just message
    verbose=1: message + compact context (if any)
    verbose>=2: message + context + cause
    """
    if isinstance(e, Ign2KvmError):
        return e.user_message(
            include_context=(verbose >= 1),
            include_cause=(verbose >= 2),
        )

    if verbose >= 2:
        return f"{type(e).__name__}: {_one_line(str(e))}"
    return _one_line(str(e)) or type(e).__name__
