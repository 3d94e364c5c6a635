"""Tests for the org.hackeros.Steam.Manager D-Bus interface."""

import asyncio
import threading
from unittest.mock import patch

import pytest
from dbus_fast import DBusError

from hackerosteam.daemon.service import BUSY_ERROR, SteamManagerInterface
from hackerosteam.lifecycle import LifecycleState
from hackerosteam.progress import CompletedEvent, MessageEvent, MessageType, ProgressEvent


@pytest.fixture
def iface(orchestrator):
    return SteamManagerInterface(orchestrator)


@pytest.mark.asyncio
async def test_create_runs_in_background(iface, orchestrator):
    with patch.object(iface, "_emit") as emit, patch.object(iface, "OperationStarted") as started:
        iface.Create()
        assert iface._current == "create"
        await iface._task
        await asyncio.sleep(0)

    started.assert_called_once_with("create")
    assert orchestrator.state is LifecycleState.CREATED
    assert iface._current == ""

    forwarded = [call.args[0] for call in emit.call_args_list]
    assert ProgressEvent(0.3) in forwarded
    assert forwarded[-1] == CompletedEvent(True, "", 0)


@pytest.mark.asyncio
async def test_second_operation_is_busy(iface, runtime):
    release = threading.Event()
    runtime.on_launch = release.wait

    with patch.object(iface, "_emit"), patch.object(iface, "OperationStarted"):
        iface.Run("", "", "")
        with pytest.raises(DBusError) as exc_info:
            iface.Kill()
        release.set()
        await iface._task

    assert exc_info.value.type == BUSY_ERROR


@pytest.mark.asyncio
async def test_failed_operation_completes_with_error(iface, host_root):
    (host_root / "dev" / "dri").rmdir()

    with patch.object(iface, "_emit") as emit, patch.object(iface, "OperationStarted"):
        iface.Create()
        await iface._task
        await asyncio.sleep(0)

    completed = emit.call_args_list[-1].args[0]
    assert completed.success is False
    assert completed.exit_code == 1


def test_emit_maps_events_to_signals(iface):
    with patch.object(iface, "Message") as message, \
         patch.object(iface, "Progress") as progress, \
         patch.object(iface, "Completed") as completed:
        iface._emit(MessageEvent(MessageType.WARNING, "careful"))
        iface._emit(ProgressEvent(0.5))
        iface._emit(CompletedEvent(False, "boom", 3))

    message.assert_called_once_with(2, "careful")
    progress.assert_called_once_with(0.5)
    completed.assert_called_once_with(False, "boom", 3)


@pytest.mark.asyncio
async def test_status_during_run_does_not_complete_it(iface, runtime, config):
    release = threading.Event()
    runtime.on_launch = release.wait
    runtime.ps_lines = [f"root 42  1  0 10:01 ?  00:00:00 systemd-nspawn -D {config.container_root}"]

    with patch.object(iface, "_emit") as emit, patch.object(iface, "OperationStarted"):
        iface.Run("", "", "")
        while "interactive" not in runtime.kinds() and not iface._task.done():
            await asyncio.sleep(0.01)

        assert await iface._query_status() is True
        await asyncio.sleep(0)
        forwarded = [call.args[0] for call in emit.call_args_list]
        assert not any(isinstance(event, CompletedEvent) for event in forwarded)
        assert iface._current == "run"

        release.set()
        await iface._task
        await asyncio.sleep(0)

    completed = [call.args[0] for call in emit.call_args_list if isinstance(call.args[0], CompletedEvent)]
    assert completed == [CompletedEvent(True, "", 0)]


@pytest.mark.asyncio
async def test_run_uses_callers_display(iface, runtime):
    with patch.object(iface, "_emit"), patch.object(iface, "OperationStarted"):
        iface.Run("terminal", "", ":3")
        await iface._task

    argv = runtime.calls[-1][1]
    assert "-E" in argv
    assert "DISPLAY=:3" in argv
    assert not any(arg.startswith("WAYLAND_DISPLAY=") for arg in argv)
    assert "exec bash -l" in argv[-1]
