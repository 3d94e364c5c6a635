# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Sandbox lifecycle operations.

The orchestrator sequences the probes, the overlay storage, the launch
policy and the nspawn runtime for each user-facing operation. Each public
method decorated with @operation reports a CompletedEvent when it
finishes, successfully or not, so every front end observing the reporter
sees the same outcome.

Not safe for concurrent use against the same container root; callers
serialise operations.
"""

from __future__ import annotations

import functools
import logging
import shlex
from enum import Enum
from pathlib import Path
from typing import Callable, Concatenate, ParamSpec, TypeVar

from .config import SteamConfig, load_config
from .context import HostContext
from .errors import ExternalProcessError, FilesystemError, NotCreated, SteamboxError
from .policy import (
    OVERLAY_EMPTY_MOUNT,
    OVERLAY_UPPER_MOUNT,
    OVERLAY_WORK_MOUNT,
    LaunchPlan,
    build_launch_plan,
)
from .probe import DisplayProfile, GpuProfile, detect_display, detect_gpu, require_display
from .progress import OperationReporter
from .runtime import NspawnRuntime, process_pattern
from .storage import ensure_overlay

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

# /etc appears once the base system has been installed into the root
MARKER_DIR = "etc"

STEAM_HOME = "/home/steam"
STEAM_USER = "steam"
STEAM_GROUP = "steamgroup"

BASE_PACKAGES = (
    "fedora-release-container",
    "bash",
    "dnf",
    "glibc-minimal-langpack",
    "util-linux",
    "shadow-utils",
)

STEAM_PACKAGES = (
    "steam",
    "gamescope",
    "vulkan-tools",
    "pipewire-pulseaudio",
    "gamemode",
    "bzip2-libs",
    "bzip2-libs.i686",
    "glibc-langpack-en",
    "util-linux",
)

RPMFUSION_RELEASES = (
    "https://download1.rpmfusion.org/free/fedora/rpmfusion-free-release-$(rpm -E %fedora).noarch.rpm",
    "https://download1.rpmfusion.org/nonfree/fedora/rpmfusion-nonfree-release-$(rpm -E %fedora).noarch.rpm",
)

# Runs inside the freshly bootstrapped root. The Progress lines are picked
# up by the output observer.
PROVISION_SCRIPT = """\
echo "Progress: 40%" &&
dnf install -y {rpmfusion} &&
echo "Progress: 50%" &&
dnf update -y &&
echo "Progress: 60%" &&
dnf install -y {packages} &&
echo "Progress: 85%" &&
{{ ln -sf "$(readlink -f /usr/lib/libbz2.so.1)" /usr/lib/libbz2.so.1.0 || true; }} &&
{{ ln -sf "$(readlink -f /usr/lib64/libbz2.so.1)" /usr/lib64/libbz2.so.1.0 || true; }} &&
{{ [ -f /etc/gshadow ] || touch /etc/gshadow; }} &&
{{ chmod 600 /etc/gshadow || true; }} &&
if getent passwd {uid} >/dev/null; then userdel -r "$(getent passwd {uid} | cut -d: -f1)" || true; fi &&
if getent group {gid} >/dev/null; then groupdel "$(getent group {gid} | cut -d: -f1)" || true; fi &&
{{ groupadd -g {gid} {group} || true; }} &&
{{ useradd -m -u {uid} -g {gid} {user} || true; }} &&
mkdir -p {home}/.steam &&
chown -R {uid}:{gid} {home} &&
echo "Progress: 100%"
"""

UPDATE_SCRIPT = 'echo "Progress: 0%" && dnf update -y && echo "Progress: 100%"'

# Stale pid/crash files make Steam refuse to start after an unclean exit
_CLEAN_STALE = "rm -f ~/.steam/steam.pid ~/.steam/.crash"


class LifecycleState(Enum):
    UNINITIALIZED = "uninitialized"
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    REMOVED = "removed"


class Session(Enum):
    """What to start inside the sandbox."""

    DEFAULT = "default"
    GAMEPAD = "gamepad"
    TERMINAL = "terminal"

    @classmethod
    def parse(cls, name: str | None) -> "Session":
        """Map a session name to a Session. Unknown names get DEFAULT."""
        if not name:
            return cls.DEFAULT
        return _SESSION_ALIASES.get(name.lower(), cls.DEFAULT)

    @property
    def command(self) -> str:
        return SESSION_COMMANDS[self]


_SESSION_ALIASES = {
    "default": Session.DEFAULT,
    "steam": Session.DEFAULT,
    "gamepad": Session.GAMEPAD,
    "deck": Session.GAMEPAD,
    "gamescope-session-steam": Session.GAMEPAD,
    "terminal": Session.TERMINAL,
    "shell": Session.TERMINAL,
}

SESSION_COMMANDS = {
    Session.DEFAULT: f"{_CLEAN_STALE} && steam",
    Session.GAMEPAD: f"{_CLEAN_STALE} && gamescope -e -- steam -gamepadui",
    Session.TERMINAL: "exec bash -l",
}


def overlay_mount_script(plan: LaunchPlan) -> str:
    """Shell step mounting the overlay layers on the Steam home."""
    uid, gid = plan.owner
    return (
        f"mkdir -p {STEAM_HOME} && "
        f"mount -t overlay overlay -o lowerdir={OVERLAY_EMPTY_MOUNT},"
        f"upperdir={OVERLAY_UPPER_MOUNT},workdir={OVERLAY_WORK_MOUNT} {STEAM_HOME} && "
        f"chown {uid}:{gid} {STEAM_HOME}"
    )


def session_script(plan: LaunchPlan, session: Session) -> str:
    return f"{overlay_mount_script(plan)} && su - {STEAM_USER} -c {shlex.quote(session.command)}"


def operation(
    operation_type: str,
    description: str,
) -> Callable[
    [Callable[Concatenate["SandboxOrchestrator", P], R]],
    Callable[Concatenate["SandboxOrchestrator", P], R],
]:
    """Decorator for orchestrator operations.

    Announces the operation on the reporter, then emits a CompletedEvent
    carrying the exit code: the returned int for operations that return
    one, the error's exit code on failure. Errors are re-raised.
    """

    def decorator(
        func: Callable[Concatenate["SandboxOrchestrator", P], R],
    ) -> Callable[Concatenate["SandboxOrchestrator", P], R]:
        @functools.wraps(func)
        def wrapper(self: "SandboxOrchestrator", *args: P.args, **kwargs: P.kwargs) -> R:
            self.refresh_host()
            logger.debug("operation %s on %s", operation_type, self.root)
            self.reporter.info(description)
            try:
                result = func(self, *args, **kwargs)
            except SteamboxError as e:
                self.reporter.completed(False, str(e), e.exit_code)
                raise
            except Exception as e:
                logger.exception("%s failed", operation_type)
                self.reporter.completed(False, f"Internal error: {e}", 1)
                raise

            exit_code = result if isinstance(result, int) and not isinstance(result, bool) else 0
            self.reporter.completed(exit_code == 0, "", exit_code)
            return result

        return wrapper

    return decorator


class SandboxOrchestrator:
    """Create, run and tear down the Steam sandbox.

    Args:
        host: Host context for the invoking user
        config: Loaded configuration; defaults to load_config(host)
        runtime: Runtime adapter; defaults to an NspawnRuntime using the
            configured privilege command
        reporter: Progress reporter observed by the front ends
        host_provider: Called at the start of every operation to rebuild
            the host context, so long-lived callers see host changes
    """

    def __init__(
        self,
        host: HostContext,
        config: SteamConfig | None = None,
        runtime: NspawnRuntime | None = None,
        reporter: OperationReporter | None = None,
        host_provider: Callable[[], HostContext] | None = None,
    ):
        self.host = host
        self._host_provider = host_provider
        self.config = config or load_config(host)
        self.runtime = runtime or NspawnRuntime(prefix=shlex.split(self.config.privilege_command))
        self.reporter = reporter or OperationReporter()
        self._state = LifecycleState.CREATED if self.is_created() else LifecycleState.UNINITIALIZED

    @classmethod
    def from_environ(cls, reporter: OperationReporter | None = None) -> "SandboxOrchestrator":
        return cls(HostContext.from_environ(), reporter=reporter, host_provider=HostContext.from_environ)

    def refresh_host(self) -> None:
        if self._host_provider is not None:
            self.host = self._host_provider()

    @property
    def root(self) -> Path:
        return self.config.container_root

    @property
    def state(self) -> LifecycleState:
        return self._state

    def is_created(self) -> bool:
        return (self.root / MARKER_DIR).is_dir()

    # -------------------------------------------------------------------------
    # Lifecycle operations
    # -------------------------------------------------------------------------

    @operation("create", "Creating Steam container")
    def create(self) -> None:
        """Create the container root and install Steam into it.

        A no-op when the container already exists.
        """
        self._create()

    @operation("run", "Starting Steam")
    def run(
        self,
        session: str | None = None,
        *,
        displays: tuple[str | None, str | None] | None = None,
    ) -> int:
        """Launch a session and block until it exits.

        Args:
            session: Session name: None/"default", "gamescope-session-steam"
                or "deck" for the gamepad UI, "terminal" for a shell.
            displays: (WAYLAND_DISPLAY, DISPLAY) of the requesting session,
                replacing the ones in the host context.

        Returns:
            The exit code of the sandboxed process, unchanged.
        """
        if displays is not None:
            self.host = self.host.with_display(*displays)
        return self._run(Session.parse(session))

    @operation("update", "Updating container packages")
    def update(self) -> None:
        self._probe(interactive=False)
        if not self.is_created():
            raise NotCreated(str(self.root))

        code = self.runtime.run_observed(self.runtime.shell_argv(self.root, UPDATE_SCRIPT), self.reporter)
        if code != 0:
            raise ExternalProcessError("dnf update", code)

        self.reporter.success("Packages updated")
        self.reporter.hint("Run 'hackerosteam remove' and 'hackerosteam create' to pick up new default packages")

    @operation("kill", "Stopping Steam")
    def kill(self) -> bool:
        """Terminate the running sandbox, if any. Returns whether one was found."""
        self._probe(interactive=False)
        return self._kill()

    @operation("restart", "Restarting Steam")
    def restart(self) -> int:
        """Kill the running sandbox and launch the default session again.

        The overlay upper layer is reused as is.
        """
        self._probe(interactive=True)
        self._kill()
        self.reporter.warning("Container restarted, overlay data preserved")
        return self._run(Session.DEFAULT)

    @operation("remove", "Removing Steam container")
    def remove(self) -> None:
        """Delete the container root. Overlay storage is left in place."""
        self._probe(interactive=False)
        if not self.root.exists():
            self.reporter.warning(f"{self.root} does not exist")
            self._state = LifecycleState.REMOVED
            return

        code = self.runtime.remove_tree(self.root)
        if code != 0:
            raise ExternalProcessError("rm", code)

        self._state = LifecycleState.REMOVED
        self.reporter.success("Container removed, Steam data kept")

    @operation("status", "Checking container status")
    def status(self) -> bool:
        """Whether any host process references the container root."""
        matches = self._processes()
        for line in matches:
            self.reporter.info(line)
        if not matches:
            self.reporter.dim("Container is not running")
        return bool(matches)

    def is_running(self) -> bool:
        """Like status(), but reports nothing. Safe during another operation."""
        return bool(self._processes())

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _probe(self, *, interactive: bool) -> tuple[GpuProfile, DisplayProfile]:
        """Run both host probes, GPU first.

        Only sessions need a display; other operations accept NONE.
        """
        gpu = detect_gpu(self.host)
        display = detect_display(self.host)
        if interactive:
            require_display(display)
        return gpu, display

    def _processes(self) -> list[str]:
        root = str(self.root)
        return [line for line in self.runtime.process_lines() if root in line.split()]

    def _create(self) -> None:
        if self.is_created():
            self.reporter.dim("Container already exists, skipping creation")
            self._state = LifecycleState.CREATED
            return

        self._probe(interactive=True)
        ensure_overlay(self.host)

        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Failed to create {self.root}: {e.strerror or e}", str(self.root)) from e

        self.reporter.info(f"Installing Fedora {self.config.release} base system...")
        self.reporter.progress(0.0)
        argv = self.runtime.bootstrap_argv(self.root, self.config.release, BASE_PACKAGES)
        code = self.runtime.run_observed(argv, self.reporter)
        if code != 0:
            raise ExternalProcessError("dnf --installroot", code)
        self.reporter.progress(0.3)

        self.reporter.info("Installing Steam and gamescope...")
        script = PROVISION_SCRIPT.format(
            rpmfusion=" ".join(RPMFUSION_RELEASES),
            packages=" ".join(STEAM_PACKAGES),
            uid=self.host.uid,
            gid=self.host.gid,
            user=STEAM_USER,
            group=STEAM_GROUP,
            home=STEAM_HOME,
        )
        code = self.runtime.run_observed(self.runtime.shell_argv(self.root, script), self.reporter)
        if code != 0:
            self.reporter.hint("Run 'hackerosteam remove' before trying again")
            raise ExternalProcessError("container provisioning", code)

        self._state = LifecycleState.CREATED
        self.reporter.success("Steam container created")

    def _run(self, session: Session) -> int:
        if not self.is_created():
            if not self.config.auto_create:
                raise NotCreated(str(self.root))
            self._create()

        gpu, display = self._probe(interactive=True)
        overlay = ensure_overlay(self.host)

        plan = build_launch_plan(gpu, display, overlay, self.host.uid, self.host.gid, host=self.host)
        argv = self.runtime.launch_argv(self.root, plan, ["/bin/bash", "-c", session_script(plan, session)])

        self.reporter.info(f"Launching {session.value} session")
        self._state = LifecycleState.RUNNING
        try:
            return self.runtime.run_interactive(argv)
        finally:
            self._state = LifecycleState.STOPPED

    def _kill(self) -> bool:
        if self.runtime.kill_matching(process_pattern(self.root)):
            self._state = LifecycleState.STOPPED
            self.reporter.success("Steam stopped")
            return True
        self.reporter.dim("Steam is not running")
        return False
