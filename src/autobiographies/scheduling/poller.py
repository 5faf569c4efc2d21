"""Fixed-interval polling of the submission router.

One tick runs to completion in a worker thread, then the poller waits for the
poll interval or the stop signal, whichever comes first. Ticks never overlap,
and stopping never interrupts a tick in progress.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from autobiographies.errors import handle_error, is_recoverable
from autobiographies.routing.models import TickResult


logger = logging.getLogger(__name__)


class IntervalPoller:
    """Run ``tick`` every ``poll_interval`` seconds until stopped."""

    def __init__(
        self,
        *,
        tick: Callable[[], TickResult],
        poll_interval: float = 300,  # 5 minutes
    ):
        """Initialize interval poller.

        Args:
            tick: Blocking tick function, usually ``SubmissionRouter.tick``
            poll_interval: Seconds between the end of one tick and the next
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.tick = tick
        self.poll_interval = poll_interval
        self.ticks_run = 0
        self.failures = 0
        self._stop_event = asyncio.Event()
        self._poll_task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self) -> None:
        """Start polling."""
        if self.running:
            raise RuntimeError("Poller already running")

        self._stop_event.clear()
        loop = asyncio.get_running_loop()
        self._poll_task = loop.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Stop polling, waiting for the current tick to finish."""
        self._stop_event.set()
        if self._poll_task:
            await self._poll_task

    async def wait(self) -> None:
        """Block until the poller has been stopped."""
        if self._poll_task:
            await self._poll_task

    async def _poll_loop(self) -> None:
        """Main polling loop."""
        logger.info(
            f"Polling every {self.poll_interval:g} seconds",
            extra={"poll_interval": self.poll_interval},
        )
        while not self._stop_event.is_set():
            try:
                result = await asyncio.to_thread(self.tick)
                self.ticks_run += 1

                if result is not None and result.has_changes:
                    logger.info(
                        f"Tick routed {len(result.routed)} submissions",
                        extra={"routed_count": len(result.routed)},
                    )

            except Exception as exc:  # noqa: BLE001
                self.failures += 1
                if is_recoverable(exc):
                    logger.warning(
                        f"Tick failed, retrying in {self.poll_interval:g} seconds: {exc}",
                        extra={"error_code": getattr(exc, "code", None)},
                    )
                else:
                    logger.error(
                        f"Tick failed: {exc}\n{handle_error(exc)}",
                        exc_info=exc,
                        extra={"error_code": getattr(exc, "code", None)},
                    )

            # Wait for next poll interval or stop signal
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.poll_interval
                )
            except asyncio.TimeoutError:
                pass

        logger.info("Poller stopped")


__all__ = ["IntervalPoller"]
