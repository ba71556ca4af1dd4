# ign2kvm/ignition/__init__.py
from .config_drive import ConfigDriveBuilder, PayloadSpec, StagedImage
from .secrets import IgnitionRef, MappingSecretSource, SecretManifestSource, load_payload

__all__ = [
    "ConfigDriveBuilder",
    "IgnitionRef",
    "MappingSecretSource",
    "PayloadSpec",
    "SecretManifestSource",
    "StagedImage",
    "load_payload",
]
