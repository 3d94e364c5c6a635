# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""D-Bus service implementation for HackerOS-Steam.

Provides the org.hackeros.Steam.Manager interface so several front ends
(CLI, TUI, GUI) can drive the sandbox and all observe the same progress
stream. Lifecycle methods start the operation and return immediately;
progress arrives as Message and Progress signals and the outcome as a
Completed signal.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from dbus_fast import BusType, DBusError
from dbus_fast.aio import MessageBus
from dbus_fast.service import ServiceInterface

from .. import __version__
from ..errors import SteamboxError
from ..lifecycle import SandboxOrchestrator
from ..progress import CompletedEvent, Event, MessageEvent, ProgressEvent
from .dbus_types import (
    DBusBool,
    DBusCompletion,
    DBusDouble,
    DBusMessage,
    DBusStr,
    PropertyAccess,
    dbus_property,
    method,
    signal,
)

logger = logging.getLogger(__name__)

BUS_NAME = "org.hackeros.Steam"
OBJECT_PATH = "/org/hackeros/Steam"
MANAGER_IFACE = "org.hackeros.Steam.Manager"
BUSY_ERROR = "org.hackeros.Steam.Error.Busy"


class SteamManagerInterface(ServiceInterface):
    """org.hackeros.Steam.Manager D-Bus interface.

    Only one lifecycle operation runs at a time; a second request while
    one is in flight fails with org.hackeros.Steam.Error.Busy.
    """

    def __init__(self, orchestrator: SandboxOrchestrator):
        super().__init__(MANAGER_IFACE)
        self._orchestrator = orchestrator
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._current = ""
        orchestrator.reporter.subscribe(self._forward)

    # =========================================================================
    # Event bridge
    # =========================================================================

    def _forward(self, event: Event) -> None:
        """Reporter observer. Called from the worker thread."""
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._emit, event)

    def _emit(self, event: Event) -> None:
        if isinstance(event, MessageEvent):
            self.Message(int(event.type), event.text)
        elif isinstance(event, ProgressEvent):
            self.Progress(event.fraction)
        elif isinstance(event, CompletedEvent):
            self.Completed(event.success, event.message, event.exit_code)

    def _start(self, name: str, func: Callable[..., Any], *args: Any) -> None:
        if self._task is not None and not self._task.done():
            raise DBusError(BUSY_ERROR, f"operation '{self._current}' is still running")

        self._loop = asyncio.get_running_loop()
        self._current = name
        self.OperationStarted(name)
        self._task = asyncio.create_task(self._run_operation(name, func, *args), name=f"op-{name}")

    async def _run_operation(self, name: str, func: Callable[..., Any], *args: Any) -> None:
        # The orchestrator blocks on external processes, keep it off the loop
        try:
            await asyncio.to_thread(func, *args)
        except SteamboxError as e:
            # Already reported through the Completed signal
            logger.info("%s failed: %s", name, e)
        except Exception:
            logger.exception("%s failed", name)
        finally:
            self._current = ""

    # =========================================================================
    # Properties
    # =========================================================================

    @dbus_property(access=PropertyAccess.READ)
    def Version(self) -> DBusStr:
        """Daemon version."""
        return __version__

    @dbus_property(access=PropertyAccess.READ)
    def State(self) -> DBusStr:
        """Lifecycle state: uninitialized, created, running, stopped, removed."""
        return self._orchestrator.state.value

    @dbus_property(access=PropertyAccess.READ)
    def CurrentOperation(self) -> DBusStr:
        """Name of the operation in flight, empty when idle."""
        return self._current

    # =========================================================================
    # Signals
    # =========================================================================

    @signal()
    def OperationStarted(self, operation_type: DBusStr) -> DBusStr:
        return operation_type

    @signal()
    def Message(self, message_type: int, message: str) -> DBusMessage:
        """Progress message (0=info, 1=success, 2=warning, 3=error, 4=dim, 5=hint)."""
        return (message_type, message)

    @signal()
    def Progress(self, fraction: float) -> DBusDouble:
        """Completion fraction in [0, 1] of the current operation."""
        return fraction

    @signal()
    def Completed(self, success: bool, message: str, exit_code: int) -> DBusCompletion:
        """Emitted once when an operation finishes."""
        return (success, message, exit_code)

    # =========================================================================
    # Methods - Lifecycle
    # =========================================================================

    @method()
    def Create(self):
        self._start("create", self._orchestrator.create)

    @method()
    def Run(self, session: DBusStr, wayland_display: DBusStr, display: DBusStr):
        """Launch a session on the caller's display.

        Empty strings select the default client and mark a display
        variable as unset.
        """
        self._start("run", self._run_session, session or None, wayland_display or None, display or None)

    def _run_session(self, session: str | None, wayland_display: str | None, display: str | None) -> int:
        return self._orchestrator.run(session, displays=(wayland_display, display))

    @method()
    def Update(self):
        self._start("update", self._orchestrator.update)

    @method()
    def Kill(self):
        self._start("kill", self._orchestrator.kill)

    @method()
    def Restart(self):
        self._start("restart", self._orchestrator.restart)

    @method()
    def Remove(self):
        self._start("remove", self._orchestrator.remove)

    @method()
    async def Status(self) -> DBusBool:
        """Whether the sandbox is currently running."""
        return await self._query_status()

    async def _query_status(self) -> bool:
        # Not an operation: must not report on the shared progress stream
        return await asyncio.to_thread(self._orchestrator.is_running)


class SteamService:
    """Main D-Bus service manager.

    Handles the D-Bus connection lifecycle and hosts the
    SteamManagerInterface. Runs on the session bus, since the sandbox
    needs the user's display and runtime directory.
    """

    def __init__(self, orchestrator: SandboxOrchestrator, bus_type: BusType = BusType.SESSION):
        self._orchestrator = orchestrator
        self._bus_type = bus_type
        self._bus: MessageBus | None = None
        self._interface: SteamManagerInterface | None = None

    async def start(self) -> None:
        """Connect, export the interface and claim the bus name."""
        self._bus = await MessageBus(bus_type=self._bus_type).connect()
        self._interface = SteamManagerInterface(self._orchestrator)
        self._bus.export(OBJECT_PATH, self._interface)
        await self._bus.request_name(BUS_NAME)

        logger.info("HackerOS-Steam daemon v%s running as %s", __version__, BUS_NAME)

    async def run(self) -> None:
        """Run the service until disconnected."""
        if self._bus is None:
            raise RuntimeError("Service not started")
        await self._bus.wait_for_disconnect()

    async def stop(self) -> None:
        if self._bus:
            self._bus.disconnect()
            self._bus = None

    @property
    def interface(self) -> SteamManagerInterface | None:
        return self._interface
