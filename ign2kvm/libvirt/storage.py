# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/libvirt/storage.py
"""Storage backend boundary.

The pipeline only needs four things from a storage backend: declare a volume
in a pool, stream a local file into it, resolve its key to a host path, and
delete it again. `StorageBackend` names that surface; `LibvirtStorageBackend`
implements it on a libvirt connection.
"""
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from ..core.exceptions import StorageError
from ..core.optional_imports import (
    RICH_AVAILABLE,
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
    libvirt,
    require_libvirt,
)

if TYPE_CHECKING:  # pragma: no cover
    from .uploader import VolumeDescriptor


class StorageBackend(Protocol):
    def declare_volume(self, pool_name: str, descriptor: "VolumeDescriptor") -> str:
        ...

    def stream_bytes(self, key: str, source: Path, size: int) -> None:
        ...

    def lookup_by_key(self, key: str) -> str:
        ...

    def delete_volume(self, key: str) -> None:
        ...


class LibvirtStorageBackend:
    """StorageBackend on top of libvirt-python. The connection opens lazily."""

    def __init__(self, uri: str = "qemu:///system", *, logger: logging.Logger, conn=None):
        self.uri = uri
        self.logger = logger
        self._conn = conn

    @property
    def conn(self):
        if self._conn is None or not self._conn.isAlive():
            require_libvirt()
            try:
                self._conn = libvirt.open(self.uri)
            except libvirt.libvirtError as e:
                raise StorageError(
                    msg=f"Failed to connect to libvirt at {self.uri}: {e}", cause=e, context={"uri": self.uri}
                ) from e
            if self._conn is None:
                raise StorageError(msg=f"Failed to connect to libvirt at {self.uri}", context={"uri": self.uri})
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None

    def declare_volume(self, pool_name: str, descriptor: "VolumeDescriptor") -> str:
        require_libvirt()
        try:
            pool = self.conn.storagePoolLookupByName(pool_name)
        except libvirt.libvirtError as e:
            raise StorageError(
                msg=f"Can't find storage pool {pool_name}: {e}", cause=e, context={"pool": pool_name}
            ) from e
        try:
            vol = pool.createXML(descriptor.to_xml(), 0)
        except libvirt.libvirtError as e:
            raise StorageError(
                msg=f"Error creating volume {descriptor.name} in pool {pool_name}: {e}",
                cause=e,
                context={"pool": pool_name, "volume": descriptor.name},
            ) from e
        key = vol.key()
        self.logger.debug("Declared volume %s (key=%s)", descriptor.name, key)
        return key

    def _lookup(self, key: str):
        require_libvirt()
        try:
            return self.conn.storageVolLookupByKey(key)
        except libvirt.libvirtError as e:
            raise StorageError(msg=f"Can't retrieve volume {key}: {e}", cause=e, context={"volume_key": key}) from e

    def stream_bytes(self, key: str, source: Path, size: int) -> None:
        vol = self._lookup(key)
        stream = self.conn.newStream(0)
        fd = os.open(str(source), os.O_RDONLY)
        try:
            progress = None
            task = None
            if RICH_AVAILABLE and sys.stderr.isatty():
                progress = Progress(
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    DownloadColumn(),
                    TransferSpeedColumn(),
                    TimeElapsedColumn(),
                )
                progress.start()
                task = progress.add_task(f"Uploading {Path(source).name}", total=size)

            def _read(_stream, nbytes, opaque):
                chunk = os.read(opaque, nbytes)
                if progress is not None:
                    progress.update(task, advance=len(chunk))
                return chunk

            try:
                vol.upload(stream, 0, size, 0)
                stream.sendAll(_read, fd)
                stream.finish()
            except libvirt.libvirtError as e:
                try:
                    stream.abort()
                except libvirt.libvirtError as abort_err:
                    self.logger.debug("Stream abort failed: %s", abort_err)
                raise StorageError(
                    msg=f"Error uploading {source} to volume {key}: {e}",
                    cause=e,
                    context={"volume_key": key, "path": str(source)},
                ) from e
            finally:
                if progress is not None:
                    progress.stop()
        finally:
            os.close(fd)

    def lookup_by_key(self, key: str) -> str:
        vol = self._lookup(key)
        try:
            path = vol.path()
        except libvirt.libvirtError as e:
            raise StorageError(
                msg=f"Error retrieving volume file for {key}: {e}", cause=e, context={"volume_key": key}
            ) from e
        if not path:
            raise StorageError(msg=f"Error retrieving volume file for {key}: empty path", context={"volume_key": key})
        return path

    def delete_volume(self, key: str) -> None:
        vol = self._lookup(key)
        try:
            vol.delete(0)
        except libvirt.libvirtError as e:
            raise StorageError(msg=f"Error deleting volume {key}: {e}", cause=e, context={"volume_key": key}) from e
