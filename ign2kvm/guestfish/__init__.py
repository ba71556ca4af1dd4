# ign2kvm/guestfish/__init__.py
from .injector import GuestFilesystemInjector, disk_image_of
from .session import RemoteControlSession, SessionState

__all__ = ["GuestFilesystemInjector", "RemoteControlSession", "SessionState", "disk_image_of"]
