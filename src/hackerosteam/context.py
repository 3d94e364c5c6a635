"""Host signals the sandbox depends on.

Everything the prober and the storage manager would otherwise read from
the process environment is collected here once, so the rest of the code
takes an explicit ``HostContext`` and can run against a fake host.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, replace
from pathlib import Path


@dataclass(frozen=True)
class HostContext:
    """Snapshot of the invoking user's host environment."""

    home: Path
    uid: int
    gid: int
    xdg_data_home: Path | None = None
    xdg_config_home: Path | None = None
    wayland_display: str | None = None
    display: str | None = None
    path: str = os.defpath
    host_root: Path = Path("/")

    @classmethod
    def from_environ(cls, environ: dict[str, str] | None = None) -> "HostContext":
        """Build a context from ``os.environ`` and the process credentials."""
        env = os.environ if environ is None else environ

        home = env.get("HOME") or os.path.expanduser("~")
        data_home = env.get("XDG_DATA_HOME")
        config_home = env.get("XDG_CONFIG_HOME")

        return cls(
            home=Path(home),
            uid=os.getuid(),
            gid=os.getgid(),
            xdg_data_home=Path(data_home) if data_home else None,
            xdg_config_home=Path(config_home) if config_home else None,
            wayland_display=env.get("WAYLAND_DISPLAY"),
            display=env.get("DISPLAY"),
            path=env.get("PATH", os.defpath),
        )

    @property
    def runtime_dir(self) -> str:
        """The user's runtime directory as seen by systemd-logind."""
        return f"/run/user/{self.uid}"

    @property
    def config_home(self) -> Path:
        return self.xdg_config_home or self.home / ".config"

    @property
    def data_home(self) -> Path:
        return self.xdg_data_home or self.home / ".local" / "share"

    def host_path(self, path: str) -> Path:
        """Map a canonical absolute host path under ``host_root``."""
        return self.host_root / path.lstrip("/")

    def exists(self, path: str) -> bool:
        return self.host_path(path).exists()

    def which(self, name: str) -> str | None:
        """Resolve an executable on this context's search path."""
        return shutil.which(name, path=self.path)

    def with_display(self, wayland: str | None, x11: str | None) -> "HostContext":
        """Return a copy with different display signals."""
        return replace(self, wayland_display=wayland, display=x11)
