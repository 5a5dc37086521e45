# collab_core/interactors/reconciler.py
import asyncio
import logging

from collab_core.interactors.request_interactor import RequestInteractor


class Reconciler:
    """Periodically retries side effects left outstanding on resolved requests."""

    def __init__(
        self,
        requests: RequestInteractor,
        logger: logging.Logger,
        interval: float = 30.0,
    ):
        self.requests = requests
        self.logger = logger
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        return await self.requests.reconcile_pending()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        self.logger.info(f"Reconciler started, interval {self.interval}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Reconciler stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as e:
                self.logger.error(f"Unexpected error in reconciliation pass: {e!s}. Continuing...")
            await asyncio.sleep(self.interval)
