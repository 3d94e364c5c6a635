"""Shared fixtures: a fake host tree and a recording runtime."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, Sequence

import pytest

from hackerosteam.config import SteamConfig
from hackerosteam.context import HostContext
from hackerosteam.lifecycle import SandboxOrchestrator
from hackerosteam.progress import Event, OperationReporter
from hackerosteam.runtime import NspawnRuntime


class FakeRuntime(NspawnRuntime):
    """Records invocations instead of running them.

    The dnf bootstrap creates the root's /etc like the real one does.
    """

    def __init__(self, launch_code: int = 0, observed_code: int = 0, running: bool = False):
        super().__init__(prefix=())
        self.launch_code = launch_code
        self.observed_code = observed_code
        self.running = running
        self.ps_lines: list[str] = []
        self.calls: list[tuple[str, list[str]]] = []
        self.on_launch: Callable[[], None] | None = None

    def run_observed(self, argv: Sequence[str], reporter: OperationReporter) -> int:
        self.calls.append(("observed", list(argv)))
        if argv[0] == "dnf" and self.observed_code == 0:
            root = Path(argv[list(argv).index("--installroot") + 1])
            (root / "etc").mkdir(parents=True, exist_ok=True)
        return self.observed_code

    def run_interactive(self, argv: Sequence[str]) -> int:
        self.calls.append(("interactive", list(argv)))
        if self.on_launch:
            self.on_launch()
        return self.launch_code

    def kill_matching(self, pattern: str) -> bool:
        self.calls.append(("kill", [pattern]))
        was_running, self.running = self.running, False
        return was_running

    def process_lines(self) -> list[str]:
        return list(self.ps_lines)

    def remove_tree(self, path: Path) -> int:
        self.calls.append(("remove", [str(path)]))
        shutil.rmtree(path)
        return 0

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.calls]


@pytest.fixture
def host_root(tmp_path: Path) -> Path:
    """A Mesa host: render, sound and input nodes, no NVIDIA."""
    root = tmp_path / "host"
    for node in ("dev/dri", "dev/snd", "dev/input"):
        (root / node).mkdir(parents=True)
    return root


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def host(tmp_path: Path, host_root: Path, bin_dir: Path) -> HostContext:
    return HostContext(
        home=tmp_path / "home",
        uid=1000,
        gid=1000,
        wayland_display="wayland-0",
        path=str(bin_dir),
        host_root=host_root,
    )


@pytest.fixture
def config(tmp_path: Path) -> SteamConfig:
    return SteamConfig(container_root=tmp_path / "home" / ".hackeros" / "HackerOS-Steam", privilege_command="")


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def events() -> list[Event]:
    return []


@pytest.fixture
def orchestrator(host, config, runtime, events) -> SandboxOrchestrator:
    reporter = OperationReporter()
    reporter.subscribe(events.append)
    return SandboxOrchestrator(host, config=config, runtime=runtime, reporter=reporter)


def install_toolkit(bin_dir: Path) -> None:
    toolkit = bin_dir / "nvidia-container-toolkit"
    toolkit.write_text("#!/bin/sh\n")
    toolkit.chmod(0o755)


def launched_plan_env(argv: list[str]) -> dict[str, str]:
    """The -E assignments of an nspawn command line."""
    env = {}
    for flag, value in zip(argv, argv[1:]):
        if flag == "-E":
            name, _, val = value.partition("=")
            env[name] = val
    return env

