# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""GPU and display-server detection.

Both probes are side-effect free and are re-run on every create and run,
since the host may have changed in between (driver swap, different
graphical session).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .context import HostContext
from .errors import NoDisplay, NoGpu, NvidiaMissing

logger = logging.getLogger(__name__)

DRI_DEVICE_DIR = "/dev/dri"
NVIDIA_DEVICE_NODE = "/dev/nvidia0"
NVIDIA_TOOLKIT = "nvidia-container-toolkit"


class GpuVendor(Enum):
    NONE = "none"
    MESA = "mesa"
    NVIDIA = "nvidia"


class DisplayKind(Enum):
    NONE = "none"
    X11 = "x11"
    WAYLAND = "wayland"


@dataclass(frozen=True)
class GpuProfile:
    vendor: GpuVendor
    nvidia_toolkit_present: bool = False

    @property
    def is_nvidia(self) -> bool:
        return self.vendor is GpuVendor.NVIDIA


@dataclass(frozen=True)
class DisplayProfile:
    kind: DisplayKind
    value: str = ""


def detect_gpu(host: HostContext) -> GpuProfile:
    """Detect the GPU vendor from host device nodes.

    Raises:
        NoGpu: The host has no render device nodes.
        NvidiaMissing: An NVIDIA node exists but the container toolkit
            is not on the executable search path.
    """
    if not host.exists(DRI_DEVICE_DIR):
        raise NoGpu()

    if host.exists(NVIDIA_DEVICE_NODE):
        if host.which(NVIDIA_TOOLKIT) is None:
            raise NvidiaMissing(NVIDIA_TOOLKIT)
        logger.info("NVIDIA GPU detected, using the proprietary driver stack")
        return GpuProfile(GpuVendor.NVIDIA, nvidia_toolkit_present=True)

    logger.info("GPU: Intel/AMD (Mesa), full acceleration")
    return GpuProfile(GpuVendor.MESA)


def detect_display(host: HostContext) -> DisplayProfile:
    """Detect the display server. Wayland wins over X11."""
    if host.wayland_display:
        return DisplayProfile(DisplayKind.WAYLAND, host.wayland_display)
    if host.display:
        return DisplayProfile(DisplayKind.X11, host.display)
    return DisplayProfile(DisplayKind.NONE)


def require_display(profile: DisplayProfile) -> DisplayProfile:
    if profile.kind is DisplayKind.NONE:
        raise NoDisplay()
    return profile
