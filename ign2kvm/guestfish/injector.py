# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/guestfish/injector.py
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional, Sequence, Union

from ..core.exceptions import Ign2KvmError, InjectionError, ProtocolError
from ..core.logging_utils import log_step
from ..core.runner import CommandRunner
from ..libvirt.disk import DiskDescriptor
from .session import RemoteControlSession

DEFAULT_BOOT_LABEL = "boot"
DEFAULT_IGNITION_PATH = "/ignition/config.ign"


def disk_image_of(devices: Sequence[DiskDescriptor]) -> str:
    """Backing file of the guest's first file-backed disk."""
    if not devices:
        raise InjectionError(msg="guest has no disks to inject ignition into")
    for disk in devices:
        if disk.device == "disk" and disk.source_file:
            return disk.source_file
    first = devices[0]
    if not first.source_file:
        raise InjectionError(msg="first guest disk has no source file", context={"target": first.target_dev})
    return first.source_file


class GuestFilesystemInjector:
    """
    Write an ignition file straight into a guest's boot filesystem.

    Sequence: listen, run, findfs-label, mount /, upload, umount-all, exit.
    The first failing step aborts the rest, except that umount-all runs
    whenever the mount succeeded and exit runs whenever the daemon is up.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        label: str = DEFAULT_BOOT_LABEL,
        target: str = DEFAULT_IGNITION_PATH,
        elevate: bool = True,
        executable: str = "guestfish",
        listen_timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.runner = runner
        self.label = label
        self.target = target
        self.elevate = elevate
        self.executable = executable
        self.listen_timeout = listen_timeout
        self.logger = logger or runner.logger

    def session_for(self, image: Union[str, Path], cancel: Optional[threading.Event] = None) -> RemoteControlSession:
        return RemoteControlSession(
            self.runner,
            image,
            elevate=self.elevate,
            executable=self.executable,
            listen_timeout=self.listen_timeout,
            cancel=cancel,
            logger=self.logger,
        )

    def inject(
        self,
        image: Union[str, Path],
        ignition_file: Union[str, Path],
        *,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        step = "listen"
        try:
            with log_step(self.logger, f"Injecting ignition into {image} using guestfish"):
                with self.session_for(image, cancel) as session:
                    step = "run"
                    session.launch()

                    step = "findfs-label"
                    try:
                        boot = session.find_filesystem(self.label)
                    except ProtocolError as e:
                        raise InjectionError(
                            msg="failed to get the boot filesystem",
                            cause=e,
                            context={"image": str(image), "label": self.label},
                        ) from e

                    step = "mount"
                    session.mount(boot.device, "/")

                    step = "upload"
                    session.upload(ignition_file, self.target)

                    step = "umount-all"
                    session.umount_all()

                    step = "exit"
                    session.exit()
        except InjectionError:
            raise
        except Ign2KvmError as e:
            raise InjectionError(
                msg=f"guestfish {step} failed: {e}",
                cause=e,
                context={"image": str(image), "step": step},
            ) from e

        self.logger.info("Ignition written to %s:%s", image, self.target)
