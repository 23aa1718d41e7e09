"""
Order Processor (background PENDING to COMPLETED completion)
============================================================

PURPOSE:
    Recurring background task that drains the PENDING backlog in bounded
    batches, oldest first, marking each batch COMPLETED with one timestamp.

TICK:
    1. Fetch up to batch_size PENDING ids ordered by created_at ASC (ids only).
    2. None found → tick done.
    3. UPDATE ... SET status=COMPLETED, completed_at=now, updated_at=now
       WHERE id IN (ids) AND status='PENDING'  (one atomic round trip).
    4. Back to 1.

CONCURRENCY:
    - Single-flight: a tick that fires while another is running is skipped,
      never queued.
    - The status='PENDING' re-check in the UPDATE is the only guard against
      other writers and other processes; a failed tick is retried from the
      current backlog on the next interval.
    - stop() cancels the timer, then waits for the in-flight tick up to
      shutdown_timeout_s and returns regardless.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set

import sqlalchemy as sa

from assessment_orders.config import settings
from assessment_orders.core.async_utils import run_sync
from assessment_orders.core.database import get_engine
from assessment_orders.models.order import AssessmentOrder, OrderStatus, utcnow

logger = logging.getLogger(__name__)

SHUTDOWN_POLL_INTERVAL = 0.1  # seconds
TICK_FAILED = "ORD-WRK-001"

orders_table = AssessmentOrder.__table__


@dataclass
class BatchRunResult:
    completed: int = 0
    batches: int = 0


class OrderProcessor:
    """Owns the worker state: timer task, single-flight flag, last-run stats."""

    def __init__(
        self,
        batch_size: int = 100,
        interval_ms: int = 5000,
        shutdown_timeout_s: float = 10.0,
        max_batches_per_tick: Optional[int] = None,
        poll_interval_s: float = SHUTDOWN_POLL_INTERVAL,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.batch_size = batch_size
        self.interval_ms = interval_ms
        self.shutdown_timeout_s = shutdown_timeout_s
        self.max_batches_per_tick = max_batches_per_tick
        self.poll_interval_s = poll_interval_s

        self._timer_task: Optional[asyncio.Task] = None
        self._tick_tasks: Set[asyncio.Task] = set()
        self._processing = False
        self._last_stamp: Optional[datetime] = None

        self._last_tick_started_at: Optional[datetime] = None
        self._last_tick_finished_at: Optional[datetime] = None
        self._last_tick_completed = 0
        self._last_error: Optional[str] = None
        self._total_completed = 0
        self._ticks_skipped = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None

    @property
    def is_processing(self) -> bool:
        return self._processing

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "processing": self._processing,
            "interval_ms": self.interval_ms,
            "batch_size": self.batch_size,
            "max_batches_per_tick": self.max_batches_per_tick,
            "last_tick_started_at": _iso(self._last_tick_started_at),
            "last_tick_finished_at": _iso(self._last_tick_finished_at),
            "last_tick_completed": self._last_tick_completed,
            "last_error": self._last_error,
            "total_completed": self._total_completed,
            "ticks_skipped": self._ticks_skipped,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Run one tick now, then every interval_ms. No-op if already running."""
        if self._timer_task is not None:
            return

        self._spawn_tick()
        self._timer_task = asyncio.create_task(self._timer_loop())
        logger.info(
            "Order processor started (interval=%dms, batchSize=%d)",
            self.interval_ms, self.batch_size,
        )

    async def stop(self) -> None:
        """Cancel the timer, then wait up to shutdown_timeout_s for the in-flight tick."""
        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None

        deadline = time.monotonic() + self.shutdown_timeout_s
        while self._processing and time.monotonic() < deadline:
            await asyncio.sleep(self.poll_interval_s)

        if self._processing:
            logger.warning("Order processor still busy during shutdown; exiting anyway")
        else:
            logger.info("Order processor stopped")

    async def _timer_loop(self) -> None:
        interval_s = self.interval_ms / 1000
        while True:
            await asyncio.sleep(interval_s)
            self._spawn_tick()

    def _spawn_tick(self) -> None:
        # Ticks run detached from the timer so a slow drain never delays the schedule
        task = asyncio.create_task(self.tick())
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self) -> Optional[BatchRunResult]:
        """Run one drain unless one is already in flight. Errors are logged, never raised."""
        if self._processing:
            self._ticks_skipped += 1
            logger.debug("Order processor tick skipped: previous run still in progress")
            return None

        self._processing = True
        self._last_tick_started_at = utcnow()
        result = None
        try:
            result = await self.process_pending_orders()
            self._last_error = None
        except Exception as exc:
            self._last_error = f"{type(exc).__name__}: {exc}"
            logger.exception(
                "Error processing pending orders",
                extra={"error.code": TICK_FAILED, "error.kind": type(exc).__name__},
            )
        finally:
            self._processing = False
            self._last_tick_finished_at = utcnow()
        return result

    async def process_pending_orders(self) -> BatchRunResult:
        """Complete PENDING orders batch by batch until none are left.

        Stops early after max_batches_per_tick batches when that cap is set.
        Store errors propagate to the caller.
        """
        result = BatchRunResult()
        self._last_tick_completed = 0
        while True:
            if self.max_batches_per_tick is not None and result.batches >= self.max_batches_per_tick:
                logger.info(
                    "Order processor batch cap reached (%d); remaining backlog waits for next tick",
                    self.max_batches_per_tick,
                )
                break

            ids = await run_sync(self._fetch_pending_ids, self.batch_size)
            if not ids:
                break

            stamp = self._next_batch_stamp()
            updated = await run_sync(self._complete_batch, ids, stamp)

            result.batches += 1
            result.completed += updated
            self._last_tick_completed = result.completed
            self._total_completed += updated
            logger.debug(
                "Completed batch %d: %d/%d orders stamped %s",
                result.batches, updated, len(ids), stamp.isoformat(),
            )

        if result.batches:
            logger.info(
                "Order processor tick completed %d orders in %d batches",
                result.completed, result.batches,
            )
        return result

    def _next_batch_stamp(self) -> datetime:
        """One timestamp per batch, strictly increasing across batches."""
        now = utcnow()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now

    # ------------------------------------------------------------------
    # Store calls (run in worker threads)
    # ------------------------------------------------------------------

    def _fetch_pending_ids(self, limit: int) -> List[str]:
        t = orders_table
        stmt = (
            sa.select(t.c.id)
            .where(t.c.status == OrderStatus.PENDING.value)
            .order_by(t.c.created_at.asc(), t.c.id.asc())
            .limit(limit)
        )
        with get_engine().connect() as conn:
            return [row.id for row in conn.execute(stmt)]

    def _complete_batch(self, ids: List[str], stamp: datetime) -> int:
        t = orders_table
        stmt = (
            t.update()
            .where(t.c.id.in_(ids))
            .where(t.c.status == OrderStatus.PENDING.value)
            .values(
                status=OrderStatus.COMPLETED.value,
                completed_at=stamp,
                updated_at=stamp,
            )
        )
        with get_engine().begin() as conn:
            return conn.execute(stmt).rowcount


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# Module-level singleton
_processor: Optional[OrderProcessor] = None


def get_order_processor() -> OrderProcessor:
    global _processor
    if _processor is None:
        _processor = OrderProcessor(
            batch_size=settings.order_processor_batch_size,
            interval_ms=settings.order_processor_interval_ms,
            shutdown_timeout_s=settings.order_processor_shutdown_timeout_s,
            max_batches_per_tick=settings.order_processor_max_batches_per_tick,
        )
    return _processor
