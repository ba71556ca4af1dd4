# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/__init__.py
"""
ign2kvm - Ignition provisioning for KVM guests that cannot read it at boot

Two ways to get a first-boot Ignition payload into an s390x (or any IDE-less)
libvirt guest:

    from ign2kvm import IgnitionProvisioner, IgnitionRef, ProvisionConfig
    from ign2kvm.ignition.secrets import SecretManifestSource
    from ign2kvm.libvirt.storage import LibvirtStorageBackend

    cfg = ProvisionConfig(pool_name="default")
    prov = IgnitionProvisioner.from_config(cfg, LibvirtStorageBackend(cfg.libvirt_uri, logger=log), log)

    # config-drive: ISO uploaded to the pool and attached as a scsi cdrom
    disk = prov.attach_config_drive(devices, IgnitionRef("worker-user-data", "openshift-machine-api"),
                                    SecretManifestSource("/etc/ign2kvm/secrets"), "worker-0.ign")

    # direct injection: written into /ignition/config.ign on the boot filesystem
    prov.inject_ignition(devices, ref, source)
"""

__version__ = "0.1.0"

from .config.config_loader import ProvisionConfig
from .ignition.secrets import IgnitionRef
from .orchestrator.provisioner import IgnitionProvisioner

__all__ = [
    "__version__",
    "IgnitionProvisioner",
    "IgnitionRef",
    "ProvisionConfig",
]
