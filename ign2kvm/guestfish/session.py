# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/guestfish/session.py
"""
One `guestfish --listen` daemon, driven through `guestfish --remote`.

State machine:

    NEW --listen--> STARTED --launch--> RUNNING --mount--> MOUNTED --umount_all--> UNMOUNTED
                       |                   |                                          |
                       +-------------------+------------------exit--------------------+--> EXITED

MOUNTED is entered as soon as a mount is attempted and can only be left
through umount_all; exit is refused while MOUNTED.

Used as a context manager the session always unmounts (if mounted) and then
exits (if listening) on the way out, whatever happened inside the block.
umount_all and exit leave their state even when the command fails, so
cleanup never sends either of them a second time.
"""
from __future__ import annotations

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from ..core.exceptions import SessionStateError
from ..core.runner import CommandRunner, CommandSpec
from .protocol import BootFilesystem, ListenBanner, expect, parse_findfs_reply, parse_listen_banner


class SessionState(str, Enum):
    NEW = "new"
    STARTED = "started"
    RUNNING = "running"
    MOUNTED = "mounted"
    UNMOUNTED = "unmounted"
    EXITED = "exited"


class RemoteControlSession:
    def __init__(
        self,
        runner: CommandRunner,
        image: Union[str, Path],
        *,
        elevate: bool = True,
        executable: str = "guestfish",
        listen_timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.runner = runner
        self.image = str(image)
        self.elevate = elevate
        self.executable = executable
        self.listen_timeout = listen_timeout
        self.cancel = cancel
        self.logger = logger or runner.logger

        self.state = SessionState.NEW
        self.pid: Optional[str] = None
        self.env: Dict[str, str] = {}
        self.mounted: Optional[str] = None

    def __repr__(self) -> str:
        return f"<RemoteControlSession image={self.image!r} pid={self.pid} state={self.state.value}>"

    # -----------------------
    # helpers
    # -----------------------

    def _require(self, op: str, *allowed: SessionState) -> None:
        if self.state not in allowed:
            raise SessionStateError(
                msg=f"guestfish {op} not allowed in state {self.state.value}",
                context={"image": self.image, "state": self.state.value},
            )

    def _remote(self, *args: str) -> str:
        spec = CommandSpec(self.executable, ("--remote", "--", *args), env=dict(self.env), elevate=self.elevate)
        return self.runner.run(spec, cancel=self.cancel)

    # -----------------------
    # protocol steps
    # -----------------------

    def listen(self) -> ListenBanner:
        """Start the daemon against the image and capture its control token."""
        self._require("listen", SessionState.NEW)
        spec = CommandSpec(self.executable, ("--listen", "-a", self.image), elevate=self.elevate)
        output = self.runner.start(spec, timeout=self.listen_timeout, cancel=self.cancel)
        banner = expect(parse_listen_banner(output))
        self.pid = banner.value
        self.env = banner.env()
        self.state = SessionState.STARTED
        self.logger.debug("guestfish listening on %s (%s=%s)", self.image, banner.key, banner.value)
        return banner

    def launch(self) -> None:
        self._require("run", SessionState.STARTED)
        self._remote("run")
        self.state = SessionState.RUNNING

    def find_filesystem(self, label: str) -> BootFilesystem:
        self._require("findfs-label", SessionState.RUNNING, SessionState.MOUNTED, SessionState.UNMOUNTED)
        return expect(parse_findfs_reply(self._remote("findfs-label", label)))

    def mount(self, device: str, mountpoint: str = "/") -> None:
        self._require("mount", SessionState.RUNNING, SessionState.UNMOUNTED)
        # a failed mount may still have left the device mounted
        self.mounted = device
        self.state = SessionState.MOUNTED
        self._remote("mount", device, mountpoint)

    def upload(self, local: Union[str, Path], remote: str) -> None:
        self._require("upload", SessionState.MOUNTED)
        self._remote("upload", str(local), remote)

    def umount_all(self) -> None:
        self._require("umount-all", SessionState.RUNNING, SessionState.MOUNTED, SessionState.UNMOUNTED)
        try:
            self._remote("umount-all")
        finally:
            self.mounted = None
            self.state = SessionState.UNMOUNTED

    def exit(self) -> None:
        self._require("exit", SessionState.STARTED, SessionState.RUNNING, SessionState.MOUNTED, SessionState.UNMOUNTED)
        if self.state == SessionState.MOUNTED:
            raise SessionStateError(
                msg="guestfish exit refused while a filesystem is mounted",
                context={"image": self.image, "mounted": self.mounted},
            )
        try:
            self._remote("exit")
        finally:
            self.state = SessionState.EXITED
            self.runner.reap()

    # -----------------------
    # cleanup
    # -----------------------

    def close(self) -> None:
        """
        Unmount (if mounted) then exit (if the daemon is up). Errors are logged.

        If unmounting fails the daemon is still told to exit: leaving it running
        holds the image open for good. Cleanup ignores the cancel token.
        """
        self.cancel = None
        if self.state == SessionState.MOUNTED:
            try:
                self.umount_all()
            except Exception as e:
                self.logger.error("guestfish umount-all failed on %s: %s", self.image, e)

        if self.state in (SessionState.STARTED, SessionState.RUNNING, SessionState.UNMOUNTED):
            try:
                self.exit()
            except Exception as e:
                self.logger.error("guestfish exit failed on %s: %s", self.image, e)

    def __enter__(self) -> "RemoteControlSession":
        self.listen()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
