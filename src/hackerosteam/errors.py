"""HackerOS-Steam exceptions."""

from __future__ import annotations

GENERIC_EXIT_CODE = 1


class SteamboxError(Exception):
    """Base exception for sandbox errors.

    Every error knows the process exit code a front end should use when
    it terminates because of it.
    """

    exit_code: int = GENERIC_EXIT_CODE


class HostEnvironmentError(SteamboxError):
    """The host cannot run the sandbox. Detected before any mutation."""


class NoGpu(HostEnvironmentError):
    """No render device nodes on the host."""

    def __init__(self) -> None:
        super().__init__("no GPU drivers found (missing /dev/dri)")


class NoDisplay(HostEnvironmentError):
    """Neither a Wayland nor an X11 session is available."""

    def __init__(self) -> None:
        super().__init__("no graphical session found (set WAYLAND_DISPLAY or DISPLAY)")


class NvidiaMissing(HostEnvironmentError):
    """An NVIDIA GPU is present but its container toolkit is not."""

    def __init__(self, toolkit: str = "nvidia-container-toolkit"):
        self.toolkit = toolkit
        super().__init__(f"NVIDIA GPU detected but {toolkit} is not installed")


class FilesystemError(SteamboxError):
    """Creating or scanning a host directory failed."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class ExternalProcessError(SteamboxError):
    """The container runtime or package manager exited non-zero."""

    def __init__(self, command: str, returncode: int):
        self.command = command
        self.returncode = returncode
        self.exit_code = returncode if returncode > 0 else GENERIC_EXIT_CODE
        super().__init__(f"{command} failed with exit code {returncode}")


class NotCreated(SteamboxError):
    """The environment has not been created yet."""

    def __init__(self, root: str):
        self.root = root
        super().__init__(f"environment does not exist: {root} (run 'hackerosteam create')")


class DaemonNotRunning(SteamboxError):
    """The hackerosteam daemon is not reachable on the session bus."""

    def __init__(self) -> None:
        super().__init__(
            "hackerosteam daemon is not running. "
            "Start it with: hackerosteam daemon"
        )
