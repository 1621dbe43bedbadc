"""Standalone runner: keeps one session open until SIGINT/SIGTERM."""

from __future__ import annotations

import asyncio
import signal

from telemetry_client.client import TelemetryClient
from telemetry_client.core.config import settings
from telemetry_client.core.logger import get_logger
from telemetry_client.startup import initialize_logging

logger = get_logger("app")


async def _run() -> None:
    initialize_logging(settings)
    client = TelemetryClient.create(settings)
    await client.start()
    client.track_errors()
    client.begin_session()

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    # First signal drains, second cancels
    state = {"signalled": False}

    def _on_signal(signum, frame):  # noqa: D401
        if not state["signalled"]:
            logger.info("signal_received", extra={"signal": signum, "action": "drain"})
            loop.call_soon_threadsafe(shutdown_event.set)
            state["signalled"] = True
        else:
            logger.warning(
                "second_signal_exit", extra={"signal": signum, "action": "cancel"}
            )
            for task in asyncio.all_tasks(loop):
                task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _on_signal)
        except (ValueError, OSError):
            logger.debug("signal_handler_install_failed", extra={"signal": sig})

    try:
        await shutdown_event.wait()
        client.end_session()
    except asyncio.CancelledError:  # pragma: no cover
        logger.info("app_cancelled")
    finally:
        await client.shutdown()


def main() -> None:  # pragma: no cover - small wrapper
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:  # noqa: PIE786
        logger.info("keyboard_interrupt_shutdown")


if __name__ == "__main__":  # pragma: no cover
    main()
