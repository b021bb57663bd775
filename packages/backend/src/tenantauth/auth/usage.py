"""PAT usage recorder — fire-and-forget last-used timestamp updates.

Learn: After a PAT authenticates, its last_used_at should move forward,
but the request must not wait for that write or fail because of it.
The Authenticator calls submit(), which only puts a job on a bounded
asyncio.Queue and returns. Worker tasks started in the FastAPI lifespan
drain the queue and call store.update_pat_last_used().

  submit() → queue (bounded) → worker → store.update_pat_last_used()
                 │ full                        │ error
                 ▼                             ▼
        log pat_usage.dropped        log pat_usage.update_failed

The log is the only error channel. No ordering is guaranteed between
two uses of the same PAT; last write wins, which is fine for telemetry.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime

import structlog

from tenantauth.store.base import CredentialStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class PATUsage:
    """One last-used update. Identifiers only, never the token itself."""

    user_id: int
    token_id: str
    used_at: datetime


class PATUsageRecorder:
    """Background workers applying PATUsage jobs to the store.

    Usage:
        recorder = PATUsageRecorder(store)
        await recorder.start()
        recorder.submit(PATUsage(user_id, token_id, now))
        await recorder.stop()
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        max_pending: int = 1000,
        workers: int = 1,
    ):
        if max_pending <= 0 or workers <= 0:
            raise ValueError("max_pending and workers must be positive")
        self.store = store
        self.workers = workers
        self._queue: asyncio.Queue[PATUsage] = asyncio.Queue(maxsize=max_pending)
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def submit(self, usage: PATUsage) -> bool:
        """Queue an update without waiting. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(usage)
        except asyncio.QueueFull:
            logger.warning(
                "pat_usage.dropped",
                user_id=usage.user_id,
                token_id=usage.token_id,
                pending=self._queue.qsize(),
            )
            return False
        return True

    async def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._run_worker(i), name=f"pat-usage-{i}")
            for i in range(self.workers)
        ]
        logger.info("pat_usage.started", workers=self.workers)

    async def stop(self, timeout: float = 5.0) -> None:
        """Drain pending updates (bounded by timeout), then cancel the workers."""
        logger.info("pat_usage.stopping", pending=self._queue.qsize())
        if self.running:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("pat_usage.drain_timeout", pending=self._queue.qsize())

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

    async def _run_worker(self, index: int) -> None:
        while True:
            usage = await self._queue.get()
            try:
                await self.store.update_pat_last_used(
                    usage.user_id, usage.token_id, usage.used_at
                )
            except Exception as e:
                logger.warning(
                    "pat_usage.update_failed",
                    worker=index,
                    user_id=usage.user_id,
                    token_id=usage.token_id,
                    error=str(e),
                )
            finally:
                self._queue.task_done()
