"""Tests for the systemd-nspawn runtime adapter."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from hackerosteam.errors import ExternalProcessError
from hackerosteam.policy import LaunchPlan, MountSpec
from hackerosteam.progress import OperationReporter, ProgressEvent
from hackerosteam.runtime import COMMAND_NOT_FOUND, NspawnRuntime, process_pattern

ROOT = Path("/home/user/.hackeros/HackerOS-Steam")


def test_launch_argv():
    plan = LaunchPlan(
        binds=[MountSpec("/dev/dri", "/dev/dri"), MountSpec("/usr/lib64/libcuda.so.1", "/usr/lib64/libcuda.so.1", True)],
        environment={"STEAMOS": "1"},
        device_allowances=["char-226 rwm"],
        capabilities=["SYS_NICE"],
    )

    argv = NspawnRuntime().launch_argv(ROOT, plan, ["/bin/bash", "-c", "steam"])

    assert argv[:4] == ["sudo", "systemd-nspawn", "-D", str(ROOT)]
    assert "--network-namespace-path=/proc/1/ns/net" in argv
    assert not any(arg.startswith(("--ipc-", "--pid-", "--uts-", "--net-")) for arg in argv)
    assert "--capability=SYS_NICE" in argv
    assert "--property=CPUQuota=90%" in argv
    assert "--property=DeviceAllow=char-226 rwm" in argv
    assert "--bind=/dev/dri:/dev/dri" in argv
    assert "--bind-ro=/usr/lib64/libcuda.so.1:/usr/lib64/libcuda.so.1" in argv
    assert argv[argv.index("-E") + 1] == "STEAMOS=1"
    assert argv[-4:] == ["--", "/bin/bash", "-c", "steam"]


def test_bootstrap_argv_without_prefix():
    argv = NspawnRuntime(prefix=()).bootstrap_argv(ROOT, "43", ["bash", "dnf"])

    assert argv[0] == "dnf"
    assert argv[argv.index("--installroot") + 1] == str(ROOT)
    assert argv[argv.index("--releasever") + 1] == "43"
    assert argv[-3:] == ["install", "bash", "dnf"]


def test_process_pattern_escapes_root():
    assert process_pattern("/home/a.b/root") == r"[s]ystemd-nspawn -D /home/a\.b/root([[:space:]]|$)"


def test_run_observed_streams_progress():
    events = []
    reporter = OperationReporter()
    reporter.subscribe(events.append)

    code = NspawnRuntime(prefix=()).run_observed(
        ["sh", "-c", "echo 'Progress: 10%'; echo noise; echo 'Progress: 100%'; exit 3"],
        reporter,
    )

    assert code == 3
    assert [e for e in events if isinstance(e, ProgressEvent)] == [ProgressEvent(0.1), ProgressEvent(1.0)]
    assert "noise" in [getattr(e, "text", None) for e in events]


def test_missing_executable_maps_to_127():
    runtime = NspawnRuntime(prefix=())
    with pytest.raises(ExternalProcessError) as exc_info:
        runtime.run_interactive(["hackerosteam-no-such-binary"])
    assert exc_info.value.exit_code == COMMAND_NOT_FOUND


@pytest.mark.parametrize("returncode, expected", [(0, True), (1, False)])
def test_kill_matching(returncode, expected):
    with patch("hackerosteam.runtime.subprocess.run", return_value=MagicMock(returncode=returncode)) as run:
        assert NspawnRuntime().kill_matching("[s]ystemd-nspawn") is expected

    run.assert_called_once_with(["sudo", "pkill", "-f", "[s]ystemd-nspawn"])


def test_kill_matching_error():
    with patch("hackerosteam.runtime.subprocess.run", return_value=MagicMock(returncode=3)):
        with pytest.raises(ExternalProcessError) as exc_info:
            NspawnRuntime().kill_matching("x")
    assert exc_info.value.exit_code == 3


def test_process_lines():
    result = subprocess.CompletedProcess(["ps"], 0, stdout="a\nb\n", stderr="")
    with patch("hackerosteam.runtime.subprocess.run", return_value=result):
        assert NspawnRuntime().process_lines() == ["a", "b"]
