# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/core/runner.py
"""
External process execution for the provisioning pipeline.

Two modes are supported:

  - run():   wait for the process, return merged stdout/stderr
  - start(): launch the process, return only its startup output and leave it
             running (used for `guestfish --listen`, which prints its control
             token and detaches)

Privilege elevation is a property of the command (CommandSpec.elevate), not of
the argument list: the runner rewrites the vector to
`<elevate_with> --preserve-env <executable> <args...>` so that the control
token environment reaches the elevated process.
"""
from __future__ import annotations

import logging
import os
import selectors
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .exceptions import CommandCancelled, CommandError, CommandTimeout
from .utils import U

DEFAULT_TIMEOUT_S = 300.0
_POLL_S = 0.2
_READ_CHUNK = 4096


@dataclass(frozen=True)
class CommandSpec:
    """One external invocation, recorded before it is executed."""
    executable: str
    args: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    elevate: bool = False

    def argv(self, elevate_with: str = "sudo") -> List[str]:
        if self.elevate:
            return [elevate_with, "--preserve-env", self.executable, *self.args]
        return [self.executable, *self.args]

    def pretty(self, elevate_with: str = "sudo") -> str:
        return U.pretty_cmd(self.argv(elevate_with))


Observer = Callable[[CommandSpec], None]


class CommandRunner:
    def __init__(
        self,
        logger: logging.Logger,
        *,
        timeout: Optional[float] = DEFAULT_TIMEOUT_S,
        elevate_with: str = "sudo",
        observer: Optional[Observer] = None,
    ):
        self.logger = logger
        self.timeout = timeout
        self.elevate_with = elevate_with
        self.observer = observer
        self._started: List[subprocess.Popen] = []

    # -----------------------
    # helpers
    # -----------------------

    def _record(self, spec: CommandSpec, verb: str) -> List[str]:
        argv = spec.argv(self.elevate_with)
        self.logger.info("%s: %s", verb, U.pretty_cmd(argv))
        if spec.env:
            self.logger.debug("Environment overrides: %s", ", ".join(sorted(spec.env)))
        if self.observer is not None:
            self.observer(spec)
        return argv

    @staticmethod
    def _env(spec: CommandSpec) -> Optional[Dict[str, str]]:
        if not spec.env:
            return None
        env = dict(os.environ)
        env.update(spec.env)
        return env

    def _popen(self, argv: List[str], spec: CommandSpec) -> subprocess.Popen:
        try:
            return subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=self._env(spec),
            )
        except OSError as e:
            raise CommandError(
                f"error starting command '{U.pretty_cmd(argv)}': {e}",
                cmd=argv,
                cause=e,
            ) from e

    @staticmethod
    def _check_cancel(cancel: Optional[threading.Event], argv: List[str]) -> None:
        if cancel is not None and cancel.is_set():
            raise CommandCancelled(f"command cancelled before start: '{U.pretty_cmd(argv)}'", cmd=argv, code=130)

    @staticmethod
    def _kill(proc: subprocess.Popen) -> bytes:
        proc.kill()
        out, _ = proc.communicate()
        return out or b""

    def _communicate(
        self,
        proc: subprocess.Popen,
        argv: List[str],
        timeout: Optional[float],
        cancel: Optional[threading.Event],
    ) -> bytes:
        if cancel is None:
            try:
                out, _ = proc.communicate(timeout=timeout)
                return out or b""
            except subprocess.TimeoutExpired as e:
                out = self._kill(proc)
                raise CommandTimeout(
                    f"command timed out after {timeout}s: '{U.pretty_cmd(argv)}'",
                    cmd=argv,
                    output=U.to_text(out),
                    cause=e,
                    code=124,
                ) from e

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            wait_s = _POLL_S if deadline is None else max(0.0, min(_POLL_S, deadline - time.monotonic()))
            try:
                out, _ = proc.communicate(timeout=wait_s)
                return out or b""
            except subprocess.TimeoutExpired:
                pass
            if cancel.is_set():
                out = self._kill(proc)
                raise CommandCancelled(
                    f"command cancelled: '{U.pretty_cmd(argv)}'", cmd=argv, output=U.to_text(out), code=130
                )
            if deadline is not None and time.monotonic() >= deadline:
                out = self._kill(proc)
                raise CommandTimeout(
                    f"command timed out after {timeout}s: '{U.pretty_cmd(argv)}'",
                    cmd=argv,
                    output=U.to_text(out),
                    code=124,
                )

    # -----------------------
    # public API
    # -----------------------

    def run(
        self,
        spec: CommandSpec,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """
        Run a command to completion and return its combined output.

        Raises:
            CommandError: the command could not start or exited non-zero
            CommandTimeout: the command outlived the timeout and was killed
            CommandCancelled: `cancel` was set while the command ran
        """
        argv = self._record(spec, "Running")
        self._check_cancel(cancel, argv)
        timeout = self.timeout if timeout is None else timeout

        proc = self._popen(argv, spec)
        output = U.to_text(self._communicate(proc, argv, timeout, cancel))
        self.logger.debug("Ran: %s Output: %s", U.pretty_cmd(argv), output.strip())

        if proc.returncode != 0:
            raise CommandError(
                f"error running command '{U.pretty_cmd(argv)}': exit status {proc.returncode}: {U.one_line(output)}",
                cmd=argv,
                returncode=proc.returncode,
                output=output,
            )
        return output

    def start(
        self,
        spec: CommandSpec,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """
        Start a command without waiting for it and return its startup output.

        Output is read until the first complete line, EOF, or the first poll
        that finds nothing more to read after some output arrived. The process
        is left running.
        """
        argv = self._record(spec, "Starting")
        self._check_cancel(cancel, argv)
        timeout = self.timeout if timeout is None else timeout

        proc = self._popen(argv, spec)
        self._started.append(proc)
        assert proc.stdout is not None

        deadline = None if timeout is None else time.monotonic() + timeout
        chunks: List[bytes] = []
        fd = proc.stdout.fileno()
        with selectors.DefaultSelector() as sel:
            sel.register(fd, selectors.EVENT_READ)
            while True:
                if cancel is not None and cancel.is_set():
                    self._kill(proc)
                    raise CommandCancelled(f"command cancelled: '{U.pretty_cmd(argv)}'", cmd=argv, code=130)
                wait_s = _POLL_S if deadline is None else max(0.0, min(_POLL_S, deadline - time.monotonic()))
                if not sel.select(timeout=wait_s):
                    if chunks:
                        break
                    if deadline is not None and time.monotonic() >= deadline:
                        self._kill(proc)
                        raise CommandTimeout(
                            f"no startup output within {timeout}s: '{U.pretty_cmd(argv)}'",
                            cmd=argv,
                            code=124,
                        )
                    continue
                chunk = os.read(fd, _READ_CHUNK)
                if not chunk:
                    break
                chunks.append(chunk)
                if b"\n" in chunk:
                    break

        output = U.to_text(b"".join(chunks))
        self.logger.info("Started: %s", U.pretty_cmd(argv))
        self.logger.debug("Startup output: %s", output.strip())
        return output

    def reap(self) -> None:
        """Collect background processes started by start() that have exited."""
        alive: List[subprocess.Popen] = []
        for proc in self._started:
            if proc.poll() is None:
                alive.append(proc)
            elif proc.stdout is not None:
                proc.stdout.close()
        self._started = alive
