# ign2kvm/libvirt/__init__.py
from .disk import DiskAttacher, DiskDescriptor, append_disk, bus_for_arch
from .storage import LibvirtStorageBackend, StorageBackend
from .uploader import VolumeDescriptor, VolumeUploader

__all__ = [
    "DiskAttacher",
    "DiskDescriptor",
    "LibvirtStorageBackend",
    "StorageBackend",
    "VolumeDescriptor",
    "VolumeUploader",
    "append_disk",
    "bus_for_arch",
]
