# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/core/file_ops.py
"""
Temporary file and directory helpers.

Everything the provisioning pipeline writes to the host is transient: the
staging tree of a config-drive build, the built ISO before upload and the
ignition file handed to guestfish. These helpers give each of them a unique
location and a cleanup path that logs instead of raising.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union

PathLike = Union[str, "os.PathLike[str]"]


@contextmanager
def scratch_dir(
    *,
    prefix: str,
    dir: Optional[PathLike] = None,
    logger: Optional[logging.Logger] = None,
) -> Generator[Path, None, None]:
    """
    Create a uniquely named directory and remove it on every exit path.

    Args:
        prefix: Name prefix passed to mkdtemp
        dir: Parent directory (default: system temp dir)
        logger: Receives a warning if removal fails

    Yields:
        Path of the new directory
    """
    if dir is not None:
        Path(dir).mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=prefix, dir=str(dir) if dir is not None else None))
    try:
        yield path
    finally:
        remove_tree(path, logger=logger)


def scratch_file(
    *,
    prefix: str,
    suffix: str = "",
    dir: Optional[PathLike] = None,
) -> Path:
    """
    Reserve a uniquely named empty file and return its path. Caller removes it.
    """
    if dir is not None:
        Path(dir).mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=str(dir) if dir is not None else None)
    os.close(fd)
    return Path(name)


def remove_tree(path: Path, *, logger: Optional[logging.Logger] = None) -> bool:
    """Remove a directory tree; log and return False on failure."""
    try:
        shutil.rmtree(path)
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        if logger is not None:
            logger.warning("Failed to remove temporary directory %s: %s", path, e)
        return False


def safe_unlink(path: Path, *, logger: Optional[logging.Logger] = None) -> bool:
    """
    Delete a file, ignoring a missing one.

    Returns:
        True if the file is gone, False if removal failed (logged when a logger is given)

    Example:
        safe_unlink(Path("/tmp/ign2kvm-worker-0.iso"), logger=logger)
    """
    try:
        Path(path).unlink(missing_ok=True)
        return True
    except OSError as e:
        if logger is not None:
            logger.warning("Failed to remove temporary file %s: %s", path, e)
        return False
