#!/usr/bin/env python3
# SPDX-License-Identifier: LGPL-3.0-or-later
"""
Example: write an Ignition file straight into a guest disk with guestfish.

The payload lands at /ignition/config.ign on the filesystem labelled "boot".
The guest must be shut off; guestfish runs through sudo unless
IGN2KVM_ELEVATE=0 is set.

Usage:
    python library_direct_injection.py /var/lib/libvirt/images/worker-0.qcow2 /path/to/config.ign
"""

import sys
import logging
from pathlib import Path

from ign2kvm import IgnitionProvisioner, IgnitionRef, ProvisionConfig
from ign2kvm.core.exceptions import Ign2KvmError, format_exception_for_cli
from ign2kvm.core.logger import Log
from ign2kvm.ignition.secrets import MappingSecretSource
from ign2kvm.libvirt.disk import DiskDescriptor
from ign2kvm.libvirt.storage import LibvirtStorageBackend


def main():
    """Main entry point."""

    if len(sys.argv) != 3:
        print(f"Usage: {sys.argv[0]} <disk-image> <config.ign>")
        sys.exit(1)

    image, ign_path = sys.argv[1:]
    logger = Log.setup(verbose=2)

    # Serve the local file as if it were the user-data secret
    source = MappingSecretSource({("default", "local"): {"userData": Path(ign_path).read_bytes()}})
    devices = [DiskDescriptor(bus="virtio", target_dev="vda", source_file=image, device="disk", driver_type="qcow2")]

    cfg = ProvisionConfig.from_env()
    # Direct injection never touches the storage pool
    prov = IgnitionProvisioner.from_config(cfg, LibvirtStorageBackend(cfg.libvirt_uri, logger=logger), logger)

    try:
        prov.inject_ignition(devices, IgnitionRef("local"), source)
    except Ign2KvmError as e:
        logging.getLogger("ign2kvm").error(format_exception_for_cli(e, verbose=2))
        sys.exit(e.code)


if __name__ == "__main__":
    main()
