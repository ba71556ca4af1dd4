#!/usr/bin/env python3
# SPDX-License-Identifier: LGPL-3.0-or-later
"""
Example: attach an Ignition config-drive to an s390x guest before first boot.

This example demonstrates:
- Reading the Ignition payload from a Kubernetes Secret manifest
- Building the config-2 ISO and uploading it into a libvirt storage pool
- Describing the uploaded volume as a read-only scsi cdrom

Usage:
    python library_config_drive.py /path/to/secrets-dir worker-user-data worker-0-ign

Requires genisoimage on the host and the libvirt extra:
    pip install 'ign2kvm[libvirt]'
"""

import sys
import logging

from ign2kvm import IgnitionProvisioner, IgnitionRef, ProvisionConfig
from ign2kvm.core.exceptions import Ign2KvmError, format_exception_for_cli
from ign2kvm.core.logger import Log
from ign2kvm.ignition.secrets import SecretManifestSource
from ign2kvm.libvirt.storage import LibvirtStorageBackend


def main():
    """Main entry point."""

    if len(sys.argv) != 4:
        print(f"Usage: {sys.argv[0]} <secrets-dir> <secret-name> <volume-name>")
        print()
        print("Example:")
        print(f"  {sys.argv[0]} /etc/ign2kvm/secrets worker-user-data worker-0-ign")
        sys.exit(1)

    secrets_dir, secret_name, volume_name = sys.argv[1:]
    logger = Log.setup(verbose=2)

    cfg = ProvisionConfig.from_env()
    backend = LibvirtStorageBackend(cfg.libvirt_uri, logger=logger)
    prov = IgnitionProvisioner.from_config(cfg, backend, logger)

    devices = []
    try:
        disk = prov.attach_config_drive(
            devices,
            IgnitionRef(secret_name),
            SecretManifestSource(secrets_dir, logger=logger),
            volume_name,
        )
    except Ign2KvmError as e:
        logging.getLogger("ign2kvm").error(format_exception_for_cli(e, verbose=1))
        sys.exit(e.code)
    finally:
        backend.close()

    # Paste into the domain's <devices> element
    print(disk.to_xml())


if __name__ == "__main__":
    main()
