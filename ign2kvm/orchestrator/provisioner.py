# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/orchestrator/provisioner.py
"""
Ignition provisioning for guests that cannot read it from a disk at boot.

Two independent paths:

  config-drive:     secret -> ISO -> storage volume -> cdrom disk appended to
                    the guest's device list (before first boot)
  direct injection: secret -> temporary .ign file -> guestfish writes it to
                    /ignition/config.ign on the guest's boot filesystem
"""
from __future__ import annotations

import logging
import threading
from typing import MutableSequence, Optional

from ..config.config_loader import ProvisionConfig
from ..core.file_ops import safe_unlink, scratch_file
from ..core.logger import Log
from ..core.logging_utils import log_step
from ..core.runner import CommandRunner
from ..guestfish.injector import GuestFilesystemInjector, disk_image_of
from ..ignition.config_drive import ConfigDriveBuilder, PayloadSpec, ignition_file
from ..ignition.secrets import IgnitionRef, SecretSource, load_payload
from ..libvirt.disk import DiskAttacher, DiskDescriptor, append_disk
from ..libvirt.storage import StorageBackend
from ..libvirt.uploader import VolumeDescriptor, VolumeUploader


class IgnitionProvisioner:
    def __init__(
        self,
        runner: CommandRunner,
        backend: StorageBackend,
        *,
        config: Optional[ProvisionConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or ProvisionConfig()
        self.runner = runner
        self.backend = backend
        self.logger = logger or runner.logger

        cfg = self.config
        self.builder = ConfigDriveBuilder(runner, tool=cfg.iso_tool, work_dir=cfg.work_dir, logger=self.logger)
        self.uploader = VolumeUploader(backend, logger=self.logger, delete_partial=cfg.delete_partial_volumes)
        self.attacher = DiskAttacher(backend, arch=cfg.arch, target_dev=cfg.target_dev, logger=self.logger)
        self.injector = GuestFilesystemInjector(
            runner,
            label=cfg.boot_label,
            target=cfg.ignition_path,
            elevate=cfg.elevate,
            executable=cfg.guestfish,
            listen_timeout=cfg.listen_timeout,
            logger=self.logger,
        )

    @classmethod
    def from_config(cls, config: ProvisionConfig, backend: StorageBackend, logger: logging.Logger) -> "IgnitionProvisioner":
        runner = CommandRunner(logger, timeout=config.command_timeout, elevate_with=config.elevate_with)
        return cls(runner, backend, config=config, logger=logger)

    def create_and_upload_iso(self, payload: PayloadSpec) -> str:
        """Build the config-drive ISO, upload it, return the volume key. The local ISO never outlives the call."""
        iso = scratch_file(prefix=f"{payload.name}-", suffix=".iso", dir=self.config.work_dir)
        try:
            with log_step(self.logger, f"Building config-drive for {payload.name}"):
                staged = self.builder.build(payload, iso)
            with log_step(self.logger, f"Uploading {payload.name} to pool {payload.pool_name}"):
                return self.uploader.upload(
                    payload.pool_name,
                    VolumeDescriptor(name=payload.name, pool_name=payload.pool_name),
                    staged,
                )
        finally:
            safe_unlink(iso, logger=self.logger)

    def attach_config_drive(
        self,
        devices: MutableSequence[DiskDescriptor],
        ref: IgnitionRef,
        source: SecretSource,
        volume_name: str,
        *,
        pool_name: Optional[str] = None,
    ) -> DiskDescriptor:
        Log.step(self.logger, f"Creating ignition config-drive for {self.config.arch}", volume=volume_name)
        payload = load_payload(source, ref, volume_name=volume_name, pool_name=pool_name or self.config.pool_name)
        self.logger.debug("Ignition: %r", payload)

        key = self.create_and_upload_iso(payload)
        disk = self.attacher.attach(key)
        append_disk(devices, disk)
        Log.ok(self.logger, "Config drive attached", target=disk.target_dev, source=disk.source_file)
        return disk

    def inject_ignition(
        self,
        devices: MutableSequence[DiskDescriptor],
        ref: IgnitionRef,
        source: SecretSource,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """Write the payload into the boot filesystem of the guest's disk. Returns the image path."""
        image = disk_image_of(devices)
        payload = load_payload(source, ref, volume_name=ref.user_data_secret, pool_name=self.config.pool_name)
        path = ignition_file(payload, self.config.work_dir)
        try:
            self.injector.inject(image, path, cancel=cancel)
        finally:
            safe_unlink(path, logger=self.logger)
        return image
