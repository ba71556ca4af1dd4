# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/libvirt/uploader.py
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from ..core.exceptions import StorageError
from ..core.logger import Log
from ..core.utils import U
from ..core.xml_utils import xml_escape
from ..ignition.config_drive import StagedImage
from .storage import StorageBackend


@dataclass(frozen=True)
class VolumeDescriptor:
    name: str
    pool_name: str
    capacity_bytes: int = 0
    target_format: str = "raw"

    def to_xml(self) -> str:
        return (
            "<volume type='file'>\n"
            f"  <name>{xml_escape(self.name)}</name>\n"
            f"  <capacity unit='B'>{int(self.capacity_bytes)}</capacity>\n"
            "  <target>\n"
            f"    <format type='{xml_escape(self.target_format)}'/>\n"
            "  </target>\n"
            "</volume>\n"
        )


class VolumeUploader:
    """
    Declare a raw volume sized to a staged image and stream the image into it.

    When streaming fails after the volume was declared, the volume is deleted
    again if `delete_partial` is set. Deletion is best effort: its failure is
    logged and the original upload error is raised.
    """

    def __init__(self, backend: StorageBackend, *, logger: logging.Logger, delete_partial: bool = True):
        self.backend = backend
        self.logger = logger
        self.delete_partial = delete_partial

    def _source_size(self, source: StagedImage) -> int:
        try:
            actual = Path(source.local_path).stat().st_size
        except OSError as e:
            raise StorageError(
                msg=f"Can't stat image {source.local_path}: {e}", cause=e, context={"path": str(source.local_path)}
            ) from e
        if actual != source.size_bytes:
            raise StorageError(
                msg=f"Image {source.local_path} is {actual} bytes, expected {source.size_bytes}",
                context={"path": str(source.local_path)},
            )
        return actual

    def upload(self, pool_name: str, volume: VolumeDescriptor, source: StagedImage) -> str:
        size = self._source_size(source)
        volume = replace(volume, pool_name=pool_name, capacity_bytes=size, target_format="raw")
        log = Log.bind(self.logger, volume=volume.name, pool=pool_name)

        log.info("Declaring volume (%s)", U.human_bytes(size))
        key = self.backend.declare_volume(pool_name, volume)

        log.info("Uploading %s", source.local_path)
        try:
            self.backend.stream_bytes(key, Path(source.local_path), size)
        except StorageError:
            self._discard(key, log)
            raise
        except Exception as e:
            self._discard(key, log)
            raise StorageError(
                msg=f"Error uploading {source.local_path} to volume {volume.name}: {e}",
                cause=e,
                context={"volume_key": key, "path": str(source.local_path)},
            ) from e

        log.info("Uploaded volume (key=%s)", key)
        return key

    def _discard(self, key: str, log) -> None:
        if not self.delete_partial:
            log.warning("Leaving partially uploaded volume %s in place", key)
            return
        try:
            self.backend.delete_volume(key)
            log.info("Deleted partially uploaded volume %s", key)
        except Exception as e:
            log.warning("Failed to delete partially uploaded volume %s: %s", key, e)
