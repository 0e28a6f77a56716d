"""Expiry sweep: batch-expire pending workflows whose TTL has passed."""

import asyncio
import contextlib
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from approvalhub.storage.base import ApprovalStore

logger = structlog.get_logger(__name__)


class ExpirySweeper:
    """Moves overdue pending workflows to `expired`.

    Uses the same pending-only conditional update as a human response, so a
    sweep racing a transition can never overwrite a decision, and repeated
    sweeps over the same rows are no-ops.
    """

    def __init__(
        self,
        store: ApprovalStore,
        *,
        interval_seconds: float = 60.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._task: asyncio.Task[None] | None = None

    async def sweep(self, now: datetime | None = None) -> int:
        """Expire every pending workflow with `expires_at < now`; returns how many."""
        now = now or self._clock()
        expired = await self.store.expire_overdue(now)
        if expired:
            logger.info("Expired overdue workflows", count=expired, swept_at=now.isoformat())
        return expired

    async def _run(self) -> None:
        while True:
            try:
                await self.sweep()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Expiry sweep failed", error=str(e), exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="expiry-sweeper")
            logger.info("Expiry sweeper started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None


__all__ = ["ExpirySweeper"]
