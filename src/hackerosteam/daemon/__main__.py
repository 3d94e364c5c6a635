"""Entry point for running the daemon directly.

Usage:
    python -m hackerosteam.daemon
    python -m hackerosteam.daemon --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

logger = logging.getLogger(__name__)


async def run_daemon() -> None:
    """Run the HackerOS-Steam D-Bus daemon until signalled."""
    from ..lifecycle import SandboxOrchestrator
    from .service import SteamService

    service = SteamService(SandboxOrchestrator.from_environ())

    # Handle shutdown signals
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_signal() -> None:
        logger.info("Shutting down...")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    try:
        await service.start()

        # Wait for either disconnect or shutdown signal
        done, pending = await asyncio.wait(
            [
                asyncio.create_task(service.run()),
                asyncio.create_task(shutdown_event.wait()),
            ],
            return_when=asyncio.FIRST_COMPLETED,
        )

        # Cancel pending tasks
        for task in pending:
            task.cancel()

    finally:
        await service.stop()


def run() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="HackerOS-Steam D-Bus daemon")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    try:
        asyncio.run(run_daemon())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
