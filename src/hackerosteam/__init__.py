# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""HackerOS-Steam sandbox orchestrator.

Provisions a Fedora root filesystem for the Steam client and launches it
under systemd-nspawn with GPU, audio and display passthrough.
"""

__version__ = "0.1.0"

from .errors import (
    DaemonNotRunning,
    ExternalProcessError,
    FilesystemError,
    HostEnvironmentError,
    NoDisplay,
    NoGpu,
    NotCreated,
    NvidiaMissing,
    SteamboxError,
)
from .lifecycle import LifecycleState, SandboxOrchestrator, Session

__all__ = [
    "DaemonNotRunning",
    "ExternalProcessError",
    "FilesystemError",
    "HostEnvironmentError",
    "LifecycleState",
    "NoDisplay",
    "NoGpu",
    "NotCreated",
    "NvidiaMissing",
    "SandboxOrchestrator",
    "Session",
    "SteamboxError",
    "__version__",
]
