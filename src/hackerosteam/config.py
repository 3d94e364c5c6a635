# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""HackerOS-Steam user configuration.

This module handles configuration with systemd-style layered precedence:

1. ~/.config/hackerosteam/hackerosteam.conf  (user overrides - highest priority)
2. /etc/hackerosteam/hackerosteam.conf       (admin/system overrides)
3. /usr/lib/hackerosteam/hackerosteam.conf   (package defaults - lowest priority)

Configuration options:
- container_root: Where the Fedora root filesystem lives
- release: Fedora release installed into a new container
- privilege_command: Command prefixed to runtime invocations (empty for none)
- auto_create: Create the container on first run if it doesn't exist
"""

import configparser
import logging
from pathlib import Path
from typing import NamedTuple

from .context import HostContext

logger = logging.getLogger(__name__)

SECTION = "hackerosteam"

# Default values (used if no config files exist)
DEFAULT_RELEASE = "43"
DEFAULT_PRIVILEGE_COMMAND = "sudo"
CONTAINER_ROOT_RELATIVE = Path(".hackeros") / "HackerOS-Steam"


class SteamConfig(NamedTuple):
    """User configuration for HackerOS-Steam."""

    container_root: Path
    release: str = DEFAULT_RELEASE
    privilege_command: str = DEFAULT_PRIVILEGE_COMMAND
    auto_create: bool = True


def default_container_root(host: HostContext) -> Path:
    return host.home / CONTAINER_ROOT_RELATIVE


def get_config_paths(host: HostContext) -> list[Path]:
    """Get all config file paths in priority order (highest first)."""
    return [
        host.config_home / "hackerosteam" / "hackerosteam.conf",
        Path("/etc/hackerosteam/hackerosteam.conf"),
        Path("/usr/lib/hackerosteam/hackerosteam.conf"),
    ]


def load_config(host: HostContext, paths: list[Path] | None = None) -> SteamConfig:
    """Load configuration from all config paths, merging with precedence.

    Reads config files from lowest to highest priority, with higher
    priority values overriding lower ones.

    Args:
        host: Host context, supplies the home and config directories.
        paths: Config files to read, highest priority first. Defaults to
            get_config_paths(host).
    """
    container_root = default_container_root(host)
    release = DEFAULT_RELEASE
    privilege_command = DEFAULT_PRIVILEGE_COMMAND
    auto_create = True

    if paths is None:
        paths = get_config_paths(host)

    # Read in reverse priority order (lowest first, so higher overrides)
    for config_path in reversed(paths):
        if not config_path.exists():
            continue

        parser = configparser.ConfigParser()
        try:
            parser.read(config_path)
        except configparser.Error:
            # Skip malformed config files
            continue

        if not parser.has_section(SECTION):
            continue

        if parser.has_option(SECTION, "container_root"):
            container_root = Path(parser.get(SECTION, "container_root")).expanduser()
        if parser.has_option(SECTION, "release"):
            release = parser.get(SECTION, "release")
        if parser.has_option(SECTION, "privilege_command"):
            privilege_command = parser.get(SECTION, "privilege_command")
        if parser.has_option(SECTION, "auto_create"):
            try:
                auto_create = parser.getboolean(SECTION, "auto_create")
            except ValueError:
                logger.warning("Ignoring invalid auto_create value in %s", config_path)

    return SteamConfig(
        container_root=container_root,
        release=release,
        privilege_command=privilege_command,
        auto_create=auto_create,
    )
