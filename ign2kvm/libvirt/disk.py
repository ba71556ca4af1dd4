# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/libvirt/disk.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, MutableSequence, Optional

from ..core.exceptions import StorageError
from ..core.xml_utils import xml_escape
from .storage import StorageBackend

# Architectures whose machine types have no IDE controller: the config-drive
# cdrom has to hang off virtio-scsi there.
_NO_IDE_ARCHES = frozenset({"s390x", "s390", "aarch64", "arm64", "ppc64le", "ppc64", "riscv64"})


def bus_for_arch(arch: str) -> str:
    """
    Bus for a cdrom on *arch*.

    >>> bus_for_arch("s390x")
    'scsi'
    >>> bus_for_arch("x86_64")
    'sata'
    """
    a = (arch or "").strip().lower()
    if a in _NO_IDE_ARCHES:
        return "scsi"
    if a in ("i386", "i686", "x86"):
        return "ide"
    return "sata"


@dataclass(frozen=True)
class DiskDescriptor:
    bus: str
    target_dev: str
    source_file: str
    device: str = "cdrom"
    driver_name: str = "qemu"
    driver_type: str = "raw"

    def to_xml(self) -> str:
        readonly = "    <readonly/>\n" if self.device == "cdrom" else ""
        return (
            f"<disk type='file' device='{xml_escape(self.device)}'>\n"
            f"    <driver name='{xml_escape(self.driver_name)}' type='{xml_escape(self.driver_type)}'/>\n"
            f"    <source file='{xml_escape(self.source_file)}'/>\n"
            f"    <target dev='{xml_escape(self.target_dev)}' bus='{xml_escape(self.bus)}'/>\n"
            f"{readonly}"
            "</disk>\n"
        )


class DiskAttacher:
    def __init__(
        self,
        backend: StorageBackend,
        *,
        arch: str = "s390x",
        target_dev: str = "vdb",
        logger: Optional[logging.Logger] = None,
    ):
        self.backend = backend
        self.arch = arch
        self.target_dev = target_dev
        self.logger = logger or logging.getLogger("ign2kvm")

    def attach(self, key: str) -> DiskDescriptor:
        """Resolve *key* to its host path and describe it as a config-drive cdrom."""
        try:
            path = self.backend.lookup_by_key(key)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(msg=f"Can't retrieve volume {key}: {e}", cause=e, context={"volume_key": key}) from e
        if not path:
            raise StorageError(msg=f"Error retrieving volume file for {key}: empty path", context={"volume_key": key})

        disk = DiskDescriptor(bus=bus_for_arch(self.arch), target_dev=self.target_dev, source_file=path)
        self.logger.debug("Config drive disk for %s: %s on %s", key, disk.target_dev, disk.bus)
        return disk


def append_disk(devices: MutableSequence[DiskDescriptor], disk: DiskDescriptor) -> List[DiskDescriptor]:
    """Append *disk* to a guest device list. Not idempotent."""
    devices.append(disk)
    return list(devices)
