"""Async D-Bus client for the hackerosteam daemon."""

from __future__ import annotations

import asyncio
import os
from typing import Callable

from dbus_fast import BusType
from dbus_fast.aio import MessageBus

from .daemon.service import BUS_NAME, MANAGER_IFACE, OBJECT_PATH
from .errors import DaemonNotRunning
from .progress import CompletedEvent, Event, MessageEvent, MessageType, ProgressEvent


class SteamClient:
    """Async client for the hackerosteam D-Bus daemon.

    Usage:
        async with SteamClient() as client:
            await client.update()
            result = await client.wait_completed(print)
    """

    def __init__(self, bus_type: BusType = BusType.SESSION):
        self._bus_type = bus_type
        self._bus: MessageBus | None = None
        self._iface = None

    async def __aenter__(self):
        try:
            self._bus = await MessageBus(bus_type=self._bus_type).connect()
            introspection = await self._bus.introspect(BUS_NAME, OBJECT_PATH)
        except Exception as e:
            if self._bus:
                self._bus.disconnect()
            raise DaemonNotRunning() from e

        proxy = self._bus.get_proxy_object(BUS_NAME, OBJECT_PATH, introspection)
        self._iface = proxy.get_interface(MANAGER_IFACE)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._bus:
            self._bus.disconnect()
        return False

    async def create(self) -> None:
        await self._iface.call_create()

    async def run(
        self,
        session: str | None = None,
        wayland_display: str | None = None,
        display: str | None = None,
    ) -> None:
        """Start a session on this client's display.

        The daemon's own environment is fixed when it starts, so the
        display variables default to the calling process's.
        """
        if wayland_display is None:
            wayland_display = os.environ.get("WAYLAND_DISPLAY", "")
        if display is None:
            display = os.environ.get("DISPLAY", "")
        await self._iface.call_run(session or "", wayland_display, display)

    async def update(self) -> None:
        await self._iface.call_update()

    async def kill(self) -> None:
        await self._iface.call_kill()

    async def restart(self) -> None:
        await self._iface.call_restart()

    async def remove(self) -> None:
        await self._iface.call_remove()

    async def status(self) -> bool:
        return await self._iface.call_status()

    async def get_state(self) -> str:
        return await self._iface.get_state()

    async def get_version(self) -> str:
        return await self._iface.get_version()

    async def wait_completed(
        self,
        on_event: Callable[[Event], None],
        timeout: float | None = None,
    ) -> CompletedEvent:
        """Forward daemon signals to ``on_event`` until an operation completes.

        Any number of clients can watch the same operation.
        """
        done: asyncio.Future[CompletedEvent] = asyncio.get_running_loop().create_future()

        def on_message(message_type: int, text: str) -> None:
            on_event(MessageEvent(MessageType(message_type), text))

        def on_progress(fraction: float) -> None:
            on_event(ProgressEvent(fraction))

        def on_completed(success: bool, message: str, exit_code: int) -> None:
            event = CompletedEvent(success, message, exit_code)
            on_event(event)
            if not done.done():
                done.set_result(event)

        self._iface.on_message(on_message)
        self._iface.on_progress(on_progress)
        self._iface.on_completed(on_completed)
        try:
            return await asyncio.wait_for(done, timeout=timeout)
        finally:
            self._iface.off_message(on_message)
            self._iface.off_progress(on_progress)
            self._iface.off_completed(on_completed)
