# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import logging

import pytest

from fakes.fake_storage import FakeStorage
from ign2kvm.core.exceptions import StorageError
from ign2kvm.libvirt.disk import DiskAttacher, DiskDescriptor, append_disk, bus_for_arch

LOG = logging.getLogger("ign2kvm.tests")


@pytest.mark.unit
class TestBusForArch:
    @pytest.mark.parametrize("arch,bus", [
        ("s390x", "scsi"),
        ("S390X", "scsi"),
        ("aarch64", "scsi"),
        ("ppc64le", "scsi"),
        ("i686", "ide"),
        ("x86_64", "sata"),
        ("", "sata"),
    ])
    def test_mapping(self, arch, bus):
        assert bus_for_arch(arch) == bus


@pytest.mark.unit
class TestDiskAttacher:
    def test_attach_resolves_key(self):
        storage = FakeStorage()
        storage.paths["key-123"] = "/var/lib/pool/vol.iso"

        disk = DiskAttacher(storage, logger=LOG).attach("key-123")

        assert disk == DiskDescriptor(
            bus="scsi", target_dev="vdb", source_file="/var/lib/pool/vol.iso",
            device="cdrom", driver_name="qemu", driver_type="raw",
        )

    def test_arch_and_target_configurable(self):
        storage = FakeStorage()
        storage.paths["k"] = "/p/k.iso"

        disk = DiskAttacher(storage, arch="x86_64", target_dev="sdb", logger=LOG).attach("k")

        assert disk.bus == "sata"
        assert disk.target_dev == "sdb"

    def test_unknown_key(self):
        with pytest.raises(StorageError) as ei:
            DiskAttacher(FakeStorage(), logger=LOG).attach("missing")
        assert "Can't retrieve volume missing" in str(ei.value)

    def test_foreign_lookup_error_wrapped(self):
        storage = FakeStorage()
        storage.fail_lookup = RuntimeError("connection lost")

        with pytest.raises(StorageError) as ei:
            DiskAttacher(storage, logger=LOG).attach("k")
        assert isinstance(ei.value.cause, RuntimeError)

    def test_empty_path(self):
        storage = FakeStorage()
        storage.paths["k"] = ""

        with pytest.raises(StorageError):
            DiskAttacher(storage, logger=LOG).attach("k")


@pytest.mark.unit
class TestDiskDevices:
    def test_append_twice_appends_twice(self):
        disk = DiskDescriptor(bus="scsi", target_dev="vdb", source_file="/p/a.iso")
        devices = []

        append_disk(devices, disk)
        out = append_disk(devices, disk)

        assert devices == [disk, disk]
        assert out == [disk, disk]

    def test_cdrom_xml(self):
        xml = DiskDescriptor(bus="scsi", target_dev="vdb", source_file="/p/a.iso").to_xml()

        assert "<disk type='file' device='cdrom'>" in xml
        assert "<driver name='qemu' type='raw'/>" in xml
        assert "<source file='/p/a.iso'/>" in xml
        assert "<target dev='vdb' bus='scsi'/>" in xml
        assert "<readonly/>" in xml

    def test_plain_disk_is_writable(self):
        xml = DiskDescriptor(bus="virtio", target_dev="vda", source_file="/p/root.qcow2", device="disk",
                             driver_type="qcow2").to_xml()

        assert "<readonly/>" not in xml
        assert "type='qcow2'" in xml
