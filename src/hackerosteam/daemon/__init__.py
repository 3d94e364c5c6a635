# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""HackerOS-Steam D-Bus daemon.

Exposes the sandbox lifecycle and its progress stream over D-Bus.
"""

from .service import BUS_NAME, MANAGER_IFACE, OBJECT_PATH, SteamManagerInterface, SteamService

__all__ = [
    "BUS_NAME",
    "MANAGER_IFACE",
    "OBJECT_PATH",
    "SteamManagerInterface",
    "SteamService",
]
