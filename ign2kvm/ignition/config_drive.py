# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/ignition/config_drive.py
"""
Config-drive ISO creation.

The guest reads its Ignition payload from an ISO 9660 volume labelled
`config-2` that carries exactly one file:

    /openstack/latest/user_data

Each build stages that tree in its own temporary directory, runs the ISO
authoring tool over it and removes the staging directory on every exit path,
so concurrent builds on one host never see each other's payload.
"""
from __future__ import annotations

import io
import logging
import os
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

import pycdlib

from ..core.exceptions import CommandError, ConfigDriveError
from ..core.file_ops import safe_unlink, scratch_dir, scratch_file
from ..core.runner import CommandRunner, CommandSpec
from ..core.utils import U

CONFIG_DRIVE_LABEL = "config-2"
USER_DATA_DIR = ("openstack", "latest")
USER_DATA_NAME = "user_data"

_STAGING_PREFIX = "ign2kvm-config-drive-"


@dataclass(frozen=True)
class PayloadSpec:
    name: str
    pool_name: str
    content: bytes

    def __repr__(self) -> str:
        # payload bytes are secret material; never render them
        return f"PayloadSpec(name={self.name!r}, pool_name={self.pool_name!r}, content=<{len(self.content)} bytes>)"


@dataclass(frozen=True)
class StagedImage:
    local_path: Path
    size_bytes: int
    format: str = "raw"


def iso_tool_args(destination: Path, source_dir: Path) -> list:
    return [
        "-o", str(destination),
        "-ldots",
        "-allow-lowercase",
        "-allow-multidot",
        "-l",
        "-quiet",
        "-J",
        "-r",
        "-V", CONFIG_DRIVE_LABEL,
        str(source_dir),
    ]


class ConfigDriveBuilder:
    def __init__(
        self,
        runner: CommandRunner,
        *,
        tool: str = "genisoimage",
        work_dir: Optional[Union[str, Path]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.runner = runner
        self.tool = tool
        self.work_dir = Path(work_dir) if work_dir else None
        self.logger = logger or runner.logger

    def _stage(self, root: Path, content: bytes) -> Path:
        latest = root.joinpath(*USER_DATA_DIR)
        try:
            latest.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigDriveError(
                msg=f"Error creating staging directory {latest}: {e}", cause=e, context={"path": str(latest)}
            ) from e

        user_data = latest / USER_DATA_NAME
        try:
            with open(user_data, "wb") as f:
                f.write(content)
        except OSError as e:
            raise ConfigDriveError(
                msg=f"Error writing ignition content to {user_data}: {e}", cause=e, context={"path": str(user_data)}
            ) from e
        return user_data

    def build(self, payload: PayloadSpec, destination: Union[str, Path]) -> StagedImage:
        """
        Build the config-drive ISO for *payload* at *destination*.

        Raises:
            ConfigDriveError: staging or the ISO tool failed; no file is left at destination
        """
        destination = Path(destination)
        self.logger.info("Creating config-drive image for %s at %s", payload.name, destination)

        with scratch_dir(prefix=_STAGING_PREFIX, dir=self.work_dir, logger=self.logger) as root:
            user_data = self._stage(root, payload.content)
            self.logger.debug("Staged %d bytes at %s", len(payload.content), user_data)

            spec = CommandSpec(self.tool, tuple(iso_tool_args(destination, root)))
            try:
                self.runner.run(spec)
            except CommandError as e:
                safe_unlink(destination, logger=self.logger)
                raise ConfigDriveError(
                    msg=f"Error creating ignition ISO image with {self.tool}: {e.output.strip() or e}",
                    cause=e,
                    context={"path": str(destination), "cmd": " ".join(e.cmd), "output": e.output},
                ) from e

        try:
            size = destination.stat().st_size
        except OSError as e:
            raise ConfigDriveError(
                msg=f"ISO image {destination} missing after {self.tool} succeeded: {e}",
                cause=e,
                context={"path": str(destination)},
            ) from e

        self.logger.info("Config drive image for %s created (%s)", payload.name, U.human_bytes(size))
        return StagedImage(local_path=destination, size_bytes=size)


def read_config_drive(path: Union[str, Path]) -> Dict[str, bytes]:
    """
    Return every file of an ISO image as {rock-ridge path: content}.

    Paths are relative to the image root, e.g. "openstack/latest/user_data".
    """
    iso = pycdlib.PyCdlib()
    iso.open(str(path))
    try:
        files: Dict[str, bytes] = {}
        for dirpath, _dirs, filenames in iso.walk(rr_path="/"):
            for name in filenames:
                rr_path = posixpath.join(dirpath, name)
                buf = io.BytesIO()
                iso.get_file_from_iso_fp(buf, rr_path=rr_path)
                files[rr_path.lstrip("/")] = buf.getvalue()
        return files
    finally:
        iso.close()


def config_drive_label(path: Union[str, Path]) -> str:
    iso = pycdlib.PyCdlib()
    iso.open(str(path))
    try:
        return iso.pvd.volume_identifier.decode("ascii", "replace").strip()
    finally:
        iso.close()


def ignition_file(payload: PayloadSpec, directory: Optional[Union[str, Path]] = None) -> Path:
    """
    Write the payload to a fresh `<name>-*.ign` file and return its path.

    The file is created 0600; the caller removes it.
    """
    path = scratch_file(prefix=f"{payload.name}-", suffix=".ign", dir=directory)
    try:
        with open(path, "wb") as f:
            f.write(payload.content)
        os.chmod(path, 0o600)
    except OSError as e:
        safe_unlink(path)
        raise ConfigDriveError(
            msg=f"Error writing ignition file {path}: {e}", cause=e, context={"path": str(path)}
        ) from e
    return path
