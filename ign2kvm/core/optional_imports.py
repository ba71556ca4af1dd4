# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/core/optional_imports.py
"""
Centralized optional imports.

libvirt-python needs the libvirt C library at build time and rich is only
used for interactive progress, so neither is allowed to break importing the
package. Call sites check the *_AVAILABLE flags or the require_* helpers.
"""

from __future__ import annotations

# Rich library (progress bars)
try:
    from rich.progress import (
        BarColumn,
        DownloadColumn,
        Progress,
        TextColumn,
        TimeElapsedColumn,
        TransferSpeedColumn,
    )

    RICH_AVAILABLE = True
except Exception:
    Progress = None  # type: ignore
    BarColumn = None  # type: ignore
    DownloadColumn = None  # type: ignore
    TextColumn = None  # type: ignore
    TimeElapsedColumn = None  # type: ignore
    TransferSpeedColumn = None  # type: ignore
    RICH_AVAILABLE = False

# libvirt-python (storage pools / volumes / streams)
try:
    import libvirt

    LIBVIRT_AVAILABLE = True
except Exception:
    libvirt = None  # type: ignore
    LIBVIRT_AVAILABLE = False


def require_libvirt() -> None:
    """Raise ImportError if libvirt-python is not available."""
    if not LIBVIRT_AVAILABLE:
        raise ImportError(
            "libvirt-python is required but not installed. "
            "Install with: pip install libvirt-python"
        )
