# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""systemd-nspawn runtime adapter.

Renders LaunchPlans into systemd-nspawn command lines and runs them, and
wraps the handful of host tools the lifecycle needs (dnf, pkill, ps,
rm). Every privileged command is prefixed with the configured privilege
command, sudo by default.

The runtime is opaque to the orchestrator: it only ever sees exit codes
and, for long-running commands, the output lines.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from .errors import ExternalProcessError
from .policy import LaunchPlan
from .progress import OperationReporter, watch_lines

logger = logging.getLogger(__name__)

NSPAWN = "systemd-nspawn"
COMMAND_NOT_FOUND = 127

# Join the host network namespace so Steam sees the real network.
# systemd-nspawn only accepts a namespace path for the network.
HOST_NETWORK_NAMESPACE = "/proc/1/ns/net"

_ERE_SPECIAL = re.compile(r"([.^$*+?()\[\]{}|\\])")


def process_pattern(root: Path | str) -> str:
    """Extended regex matching the nspawn process booted from ``root``.

    The bracketed first letter keeps the pattern from matching the
    command line of the pkill (or sudo) process that carries it. The root
    must be followed by whitespace or the end of the line, so sibling
    roots sharing a prefix are left alone.
    """
    escaped = _ERE_SPECIAL.sub(r"\\\1", str(root))
    return f"[s]ystemd-nspawn -D {escaped}([[:space:]]|$)"


class NspawnRuntime:
    """Runs host commands for the orchestrator.

    Args:
        prefix: Privilege escalation command prepended to privileged
            invocations, e.g. ("sudo",). Empty when already root.
        nspawn: systemd-nspawn executable.
    """

    def __init__(self, prefix: Sequence[str] = ("sudo",), nspawn: str = NSPAWN):
        self._prefix = list(prefix)
        self._nspawn = nspawn

    def _privileged(self, *argv: str) -> list[str]:
        return [*self._prefix, *argv]

    # -------------------------------------------------------------------------
    # Command construction
    # -------------------------------------------------------------------------

    def launch_argv(self, root: Path, plan: LaunchPlan, command: Sequence[str]) -> list[str]:
        """Command line booting ``command`` inside ``root`` under ``plan``."""
        argv = self._privileged(self._nspawn, "-D", str(root), "--quiet", "--private-users=no")
        argv.append(f"--network-namespace-path={HOST_NETWORK_NAMESPACE}")
        argv.append("--no-new-privileges=yes")
        argv.extend(f"--capability={cap}" for cap in plan.capabilities)
        argv.extend(f"--property={prop}" for prop in plan.resource_limits.properties())
        argv.extend(f"--property=DeviceAllow={allow}" for allow in plan.device_allowances)

        for bind in plan.binds:
            flag = "--bind-ro" if bind.read_only else "--bind"
            argv.append(f"{flag}={bind.source}:{bind.destination}")

        for name, value in plan.environment.items():
            argv.extend(["-E", f"{name}={value}"])

        argv.extend(["--console=interactive", "--", *command])
        return argv

    def shell_argv(self, root: Path, script: str) -> list[str]:
        """Command line running a bash script inside ``root``."""
        return self._privileged(self._nspawn, "-D", str(root), "--quiet", "/bin/bash", "-c", script)

    def bootstrap_argv(self, root: Path, release: str, packages: Iterable[str]) -> list[str]:
        """Command line installing a minimal Fedora into ``root``."""
        return self._privileged(
            "dnf",
            "--installroot", str(root),
            "--releasever", release,
            "--assumeyes",
            "--setopt", "install_weak_deps=False",
            "install",
            *packages,
        )

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def run_interactive(self, argv: Sequence[str]) -> int:
        """Run with inherited stdin/stdout/stderr and return the exit code."""
        logger.debug("exec %s", argv)
        try:
            return subprocess.run(list(argv)).returncode
        except FileNotFoundError as e:
            raise ExternalProcessError(argv[0], COMMAND_NOT_FOUND) from e

    def run_observed(self, argv: Sequence[str], reporter: OperationReporter) -> int:
        """Run, streaming stdout line by line to the reporter.

        Each line is echoed as a dim message and checked for progress
        markers; stderr is inherited.
        """
        logger.debug("exec %s", argv)
        try:
            proc = subprocess.Popen(
                list(argv),
                stdout=subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise ExternalProcessError(argv[0], COMMAND_NOT_FOUND) from e

        assert proc.stdout is not None
        with proc:
            watch_lines(_echo(proc.stdout, reporter), reporter)
        return proc.returncode

    def kill_matching(self, pattern: str) -> bool:
        """pkill -f. Returns True if any process matched."""
        argv = self._privileged("pkill", "-f", pattern)
        try:
            result = subprocess.run(argv)
        except FileNotFoundError as e:
            raise ExternalProcessError(argv[0], COMMAND_NOT_FOUND) from e

        # pkill: 0 matched, 1 nothing matched, anything else is an error
        if result.returncode not in (0, 1):
            raise ExternalProcessError("pkill", result.returncode)
        return result.returncode == 0

    def process_lines(self) -> list[str]:
        """The host process table as ``ps -ef --forest`` lines."""
        try:
            result = subprocess.run(
                ["ps", "-ef", "--forest"],
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise ExternalProcessError("ps", COMMAND_NOT_FOUND) from e

        if result.returncode != 0:
            raise ExternalProcessError("ps", result.returncode)
        return result.stdout.splitlines()

    def remove_tree(self, path: Path) -> int:
        """Recursively delete a root-owned tree. Returns rm's exit code."""
        return self.run_interactive(self._privileged("rm", "-rf", "--", str(path)))


def _echo(lines: Iterable[str], reporter: OperationReporter) -> Iterator[str]:
    for line in lines:
        line = line.rstrip("\n")
        reporter.dim(line)
        yield line
