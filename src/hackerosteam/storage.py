# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Persistent overlay storage for the Steam home directory.

The sandbox mounts an overlay on /home/steam at launch:

    lowerdir = <base>/empty   (read-only, always empty)
    upperdir = <base>/upper   (everything Steam writes: library, settings)
    workdir  = <base>/work    (kernel scratch space)

The directories live under the user's data home, outside the container
root, so removing the container never touches the user's games.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .context import HostContext
from .errors import FilesystemError

logger = logging.getLogger(__name__)

DATA_DIR_NAME = "hackerosteam"


@dataclass(frozen=True)
class OverlayPaths:
    base: Path
    upper: Path
    work: Path
    empty: Path

    @classmethod
    def under(cls, base: Path) -> "OverlayPaths":
        return cls(
            base=base,
            upper=base / "upper",
            work=base / "work",
            empty=base / "empty",
        )


def _mkdir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Failed to create {path}: {e.strerror or e}", str(path)) from e


def resolve_data_dirs(host: HostContext) -> OverlayPaths:
    """Compute the overlay directories and make sure they all exist.

    Safe to call any number of times; existing directories and their
    contents are left alone.
    """
    paths = OverlayPaths.under(host.data_home / DATA_DIR_NAME)
    for path in (paths.base, paths.empty, paths.upper, paths.work):
        _mkdir(path)
    return paths


def is_provisioned(paths: OverlayPaths) -> bool:
    """Whether the upper layer already holds user data."""
    try:
        with os.scandir(paths.upper) as entries:
            return next(entries, None) is not None
    except FileNotFoundError:
        return False
    except OSError as e:
        raise FilesystemError(f"Failed to read {paths.upper}: {e.strerror or e}", str(paths.upper)) from e


def ensure_overlay(host: HostContext) -> OverlayPaths:
    """Prepare the overlay layers for a launch.

    First-time provisioning (re)creates ``upper`` and ``work`` together.
    Once anything has been written to ``upper`` this is a no-op, which is
    what keeps Steam data alive across restart and run cycles.
    """
    paths = resolve_data_dirs(host)
    if is_provisioned(paths):
        return paths

    logger.info("Initialising overlay storage in %s", paths.base)
    _mkdir(paths.upper)
    _mkdir(paths.work)
    return paths
