"""In-process periodic purge of expired shared files."""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

from application.services.shared_file_service import CleanupReport, SharedFileApplicationService
from core.logging_config import get_logger

logger = get_logger(__name__)


class ExpirySweeper:
    """Runs ``cleanup_expired`` once at start, then every ``interval`` seconds.

    Sweeps never overlap: the loop awaits each run before sleeping again.
    A failing sweep is logged and the loop carries on.
    """

    def __init__(
        self,
        service_factory: Callable[[], SharedFileApplicationService],
        interval: float = 3600,
    ):
        self._service_factory = service_factory
        self._interval = interval
        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Optional[CleanupReport]:
        try:
            return await self._service_factory().cleanup_expired()
        except Exception as exc:
            logger.error("expiry_sweep_failed", error=str(exc), exc_info=True)
            return None

    async def _loop(self) -> None:
        logger.info("expiry_sweeper_started", interval=self._interval)
        while not self._stopping.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._loop(), name="expiry-sweeper")

    async def aclose(self) -> None:
        self._stopping.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("expiry_sweeper_stopped")
