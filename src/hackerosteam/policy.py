# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Launch policy for the Steam sandbox.

Turns the probed GPU and display, the overlay directories and the
invoking user into a LaunchPlan: bind mounts, environment, device
allowances, capabilities and cgroup limits. The plan is rebuilt for
every launch and never persisted.

Host state is only consulted through the HostContext (existence checks)
and an injectable directory lister, so tests can describe a fake host
with a temporary directory or a plain dict.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .context import HostContext
from .errors import FilesystemError
from .probe import DisplayKind, DisplayProfile, GpuProfile, GpuVendor
from .storage import OverlayPaths

ListDir = Callable[[str], Iterable[str]]

# Overlay layers are exposed inside the container at fixed paths and
# mounted onto the Steam home by the launch script.
OVERLAY_UPPER_MOUNT = "/mnt/upper"
OVERLAY_WORK_MOUNT = "/mnt/work"
OVERLAY_EMPTY_MOUNT = "/mnt/empty"

X11_SOCKET_DIR = "/tmp/.X11-unix"
HOST_DEVICE_DIRS = ("/dev/dri", "/dev/snd", "/dev/input")

# Vendor-neutral ICD loaders and driver configuration
SHARED_GRAPHICS_DIRS = ("/usr/share/vulkan", "/usr/share/glvnd", "/usr/share/drirc.d")
MESA_DRI_DIRS = ("/usr/lib64/dri", "/usr/lib/dri")

NVIDIA_DEVICE_NODES = (
    "/dev/nvidia0",
    "/dev/nvidiactl",
    "/dev/nvidia-modeset",
    "/dev/nvidia-uvm",
    "/dev/nvidia-uvm-tools",
)
NVIDIA_LIBRARY_DIRS = ("/usr/lib64", "/usr/lib")
NVIDIA_LIBRARY_PREFIXES = (
    "libnvidia-",
    "libcuda",
    "libnvrtc",
    "libGLX_nvidia",
    "libEGL_nvidia",
    "libGLESv1_CM_nvidia",
    "libGLESv2_nvidia",
)
NVIDIA_BINARY_DIR = "/usr/bin"
NVIDIA_BINARY_PREFIXES = ("nvidia-",)
NVIDIA_OPENCL_ICD = "/etc/OpenCL/vendors/nvidia.icd"

# Character device majors: 226 DRM, 116 ALSA, 13 input
BASE_DEVICE_ALLOWANCES = ("char-226 rwm", "char-116 rwm", "char-13 rwm")
# 195 nvidia, 235 nvidia-uvm
NVIDIA_DEVICE_ALLOWANCES = ("char-195 rwm", "char-235 rwm")

CAPABILITIES = ("SYS_NICE", "IPC_LOCK")

NVIDIA_ENVIRONMENT = {
    "NVIDIA_VISIBLE_DEVICES": "all",
    "NVIDIA_DRIVER_CAPABILITIES": "all",
    "__GLX_VENDOR_LIBRARY_NAME": "nvidia",
}


@dataclass(frozen=True)
class MountSpec:
    source: str
    destination: str
    read_only: bool = False

    @classmethod
    def same(cls, path: str, read_only: bool = False) -> "MountSpec":
        """Bind a host path at the same location inside the container."""
        return cls(path, path, read_only)


@dataclass(frozen=True)
class ResourceLimits:
    cpu_quota: str = "90%"
    memory_max: int = 16 * 1024**3
    tasks_max: int = 4096
    io_weight: int = 1000

    def properties(self) -> list[str]:
        """Render as systemd unit properties."""
        return [
            f"CPUQuota={self.cpu_quota}",
            f"MemoryMax={self.memory_max}",
            f"TasksMax={self.tasks_max}",
            f"IOWeight={self.io_weight}",
        ]


RESOURCE_LIMITS = ResourceLimits()


@dataclass
class LaunchPlan:
    binds: list[MountSpec] = field(default_factory=list)
    environment: dict[str, str] = field(default_factory=dict)
    device_allowances: list[str] = field(default_factory=list)
    capabilities: list[str] = field(default_factory=list)
    resource_limits: ResourceLimits = RESOURCE_LIMITS
    # Ownership applied to the Steam home once the overlay is mounted
    owner: tuple[int, int] = (0, 0)

    def bind_sources(self, read_only: bool | None = None) -> list[str]:
        return [
            b.source for b in self.binds
            if read_only is None or b.read_only == read_only
        ]


def select_prefixed(names: Iterable[str], prefixes: Iterable[str]) -> list[str]:
    """Return the names starting with any of the prefixes, sorted."""
    prefixes = tuple(prefixes)
    return sorted(name for name in names if name.startswith(prefixes))


def _scan(host: HostContext, directory: str, prefixes: Iterable[str], list_dir: ListDir) -> list[str]:
    """Matching entries of a host directory as canonical host paths."""
    if not host.exists(directory):
        return []
    try:
        names = list(list_dir(str(host.host_path(directory))))
    except OSError as e:
        raise FilesystemError(f"Failed to scan {directory}: {e.strerror or e}", directory) from e
    return [f"{directory.rstrip('/')}/{name}" for name in select_prefixed(names, prefixes)]


def _nvidia_binds(host: HostContext, list_dir: ListDir) -> list[MountSpec]:
    binds = [MountSpec.same(node) for node in NVIDIA_DEVICE_NODES if host.exists(node)]

    for lib_dir in NVIDIA_LIBRARY_DIRS:
        binds.extend(
            MountSpec.same(path, read_only=True)
            for path in _scan(host, lib_dir, NVIDIA_LIBRARY_PREFIXES, list_dir)
        )

    binds.extend(
        MountSpec.same(path, read_only=True)
        for path in _scan(host, NVIDIA_BINARY_DIR, NVIDIA_BINARY_PREFIXES, list_dir)
    )

    if host.exists(NVIDIA_OPENCL_ICD):
        binds.append(MountSpec.same(NVIDIA_OPENCL_ICD, read_only=True))
    return binds


def build_environment(gpu: GpuProfile, display: DisplayProfile, runtime_dir: str) -> dict[str, str]:
    env = {
        "PULSE_SERVER": f"unix:{runtime_dir}/pulse/native",
        "STEAMOS": "1",
        "STEAM_RUNTIME": "1",
        "XDG_RUNTIME_DIR": runtime_dir,
        "DBUS_SESSION_BUS_ADDRESS": f"unix:path={runtime_dir}/bus",
        "LANG": "en_US.UTF-8",
    }

    if display.kind is DisplayKind.WAYLAND:
        env["WAYLAND_DISPLAY"] = display.value or "wayland-0"
    elif display.kind is DisplayKind.X11:
        env["DISPLAY"] = display.value or ":0"

    if gpu.vendor is GpuVendor.NVIDIA:
        env.update(NVIDIA_ENVIRONMENT)
    return env


def build_launch_plan(
    gpu: GpuProfile,
    display: DisplayProfile,
    overlay: OverlayPaths,
    uid: int,
    gid: int,
    *,
    host: HostContext,
    list_dir: ListDir = os.listdir,
) -> LaunchPlan:
    """Build the launch plan for one sandbox session.

    Args:
        gpu: Probed GPU profile
        display: Probed display profile
        overlay: Overlay directories backing /home/steam
        uid: Invoking user's UID, selects the runtime directory
        gid: Invoking user's GID, owns the mounted Steam home
        host: Host context used for existence checks
        list_dir: Directory lister used for the NVIDIA library scans

    Raises:
        FilesystemError: A library directory exists but can't be listed.
    """
    runtime_dir = f"/run/user/{uid}"

    binds = [
        MountSpec.same(X11_SOCKET_DIR),
        MountSpec.same(runtime_dir),
        MountSpec(str(overlay.upper), OVERLAY_UPPER_MOUNT),
        MountSpec(str(overlay.work), OVERLAY_WORK_MOUNT),
        MountSpec(str(overlay.empty), OVERLAY_EMPTY_MOUNT),
        *(MountSpec.same(dev) for dev in HOST_DEVICE_DIRS),
    ]

    binds.extend(
        MountSpec.same(path, read_only=True)
        for path in SHARED_GRAPHICS_DIRS
        if host.exists(path)
    )

    device_allowances = list(BASE_DEVICE_ALLOWANCES)

    if gpu.vendor is GpuVendor.MESA:
        binds.extend(
            MountSpec.same(path, read_only=True)
            for path in MESA_DRI_DIRS
            if host.exists(path)
        )
    elif gpu.vendor is GpuVendor.NVIDIA:
        device_allowances.extend(NVIDIA_DEVICE_ALLOWANCES)
        binds.extend(_nvidia_binds(host, list_dir))

    return LaunchPlan(
        binds=binds,
        environment=build_environment(gpu, display, runtime_dir),
        device_allowances=device_allowances,
        capabilities=list(CAPABILITIES),
        resource_limits=RESOURCE_LIMITS,
        owner=(uid, gid),
    )
