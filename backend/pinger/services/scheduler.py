"""Scheduler service - runs periodic probes and raises transition alerts.

Scheduling Design:
- One APScheduler job ticks every second and only launches work
- A target is due when the current epoch second is a multiple of its
  frequency_sec, so a 60s target fires at :00 of every minute
- A target never has two probes in flight; different targets run in
  parallel with no global cap
- A boundary missed because the tick itself was late is skipped, not
  replayed

Per-target pipeline: probe -> persist -> broadcast -> compare the last two
results -> alert on UP/DOWN change.
"""
import asyncio
import logging
import threading
import time
from datetime import datetime, timedelta
from functools import partial
from typing import List, Optional, Sequence, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings
from ..models import CheckResult, Target
from ..schemas.events import CheckResultEvent, TransitionEvent
from .alerter import alerter_service, AlerterService
from .checker import checker_service, CheckerService, ProbeResult
from .registry import (
    channel_registry,
    result_store,
    target_registry,
    ChannelRegistry,
    ResultStore,
    TargetRegistry,
)
from .websocket_manager import websocket_manager, ConnectionManager

logger = logging.getLogger(__name__)


class InFlightGuard:
    """Set of target ids with a probe currently running.

    Guarded by a lock so it stays correct if completions are ever
    delivered from worker threads.
    """

    def __init__(self):
        self._ids: Set[int] = set()
        self._lock = threading.Lock()

    def try_acquire(self, target_id: int) -> bool:
        """Mark a target in flight; False if it already was."""
        with self._lock:
            if target_id in self._ids:
                return False
            self._ids.add(target_id)
            return True

    def release(self, target_id: int):
        with self._lock:
            self._ids.discard(target_id)

    def __contains__(self, target_id: int) -> bool:
        with self._lock:
            return target_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


def is_due(now_epoch: int, frequency_sec: int) -> bool:
    """Epoch-aligned firing: due on every multiple of ``frequency_sec``."""
    if not frequency_sec or frequency_sec <= 0:
        return False
    return now_epoch % frequency_sec == 0


def detect_transition(results: Sequence[CheckResult]) -> Optional[str]:
    """Return the new status if the two newest results differ, else None.

    ``results`` is newest-first. A lone first result is never a transition.
    """
    if len(results) != 2:
        return None
    latest, previous = results
    if latest.status == previous.status:
        return None
    return latest.status


def _utc_iso() -> str:
    return datetime.utcnow().isoformat(timespec="milliseconds") + "Z"


class SchedulerService:
    """Service for scheduling and running per-target checks."""

    def __init__(
        self,
        targets: Optional[TargetRegistry] = None,
        results: Optional[ResultStore] = None,
        channels: Optional[ChannelRegistry] = None,
        checker: Optional[CheckerService] = None,
        alerter: Optional[AlerterService] = None,
        broadcaster: Optional[ConnectionManager] = None,
        tick_seconds: Optional[int] = None,
    ):
        self.targets = targets or target_registry
        self.results = results or result_store
        self.channels = channels or channel_registry
        self.checker = checker or checker_service
        self.alerter = alerter or alerter_service
        self.broadcaster = broadcaster or websocket_manager
        self.tick_seconds = tick_seconds or settings.scheduler_tick_seconds

        self.in_flight = InFlightGuard()
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._tasks: Set[asyncio.Task] = set()
        self._running = False

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()

        # Start just past a whole second so int(time.time()) advances once per tick
        first_tick = datetime.now().replace(microsecond=0) + timedelta(seconds=1, milliseconds=50)
        self.scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.tick_seconds, start_date=first_tick),
            id="run_checks",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=None,
            coalesce=True,
        )

        if settings.results_retention_days > 0:
            self.scheduler.add_job(
                self._cleanup_old_records,
                trigger=IntervalTrigger(hours=1),
                id="cleanup_old_records",
                replace_existing=True,
                max_instances=1,
            )

        self.scheduler.start()
        self._running = True
        logger.info(f"Starting health check scheduler (tick={self.tick_seconds}s)")

    def stop(self):
        """Stop the scheduler. In-flight probes finish on their own timeouts."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    async def tick(self, now: Optional[int] = None) -> List[int]:
        """Launch a check for every due, idle, enabled target.

        Returns the ids that were launched. Never awaits a probe.
        """
        try:
            targets = await self.targets.list_enabled()
        except Exception as e:
            logger.error(f"Scheduler error: {e}")
            return []

        if now is None:
            now = int(time.time())

        launched = []
        for target in targets:
            if not is_due(now, target.frequency_sec):
                continue
            if not self.in_flight.try_acquire(target.id):
                logger.debug(f"Target {target.name} still in flight, skipping")
                continue

            task = asyncio.create_task(self.run_check(target))
            self._tasks.add(task)
            task.add_done_callback(partial(self._on_check_done, target.id))
            launched.append(target.id)

        if launched:
            logger.debug(f"Launched {len(launched)} check(s) at epoch {now}")
        return launched

    def _on_check_done(self, target_id: int, task: asyncio.Task):
        self.in_flight.release(target_id)
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Check pipeline for target {target_id} failed: {error}")

    async def wait_idle(self):
        """Wait for all launched checks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            # Let done callbacks release their targets
            await asyncio.sleep(0)

    async def run_check(self, target: Target) -> Optional[CheckResult]:
        """Probe one target and run everything downstream of the result.

        Returns the stored result, or None when it could not be persisted.
        """
        probe = await self.checker.run_probe(target)
        status = probe.status

        try:
            stored = await self.results.append(
                target.id,
                status,
                probe.latency_ms,
                probe.code,
                probe.message,
            )
        except Exception as e:
            logger.error(f"Failed to store result for target {target.name}: {e}")
            return None

        await self._broadcast(target, probe, stored)

        try:
            last_two = await self.results.last_results(target.id, 2)
        except Exception as e:
            logger.error(f"Failed to read recent results for target {target.name}: {e}")
            return stored

        new_status = detect_transition(last_two)
        if new_status is not None:
            await self._notify(target, new_status, probe)

        logger.debug(f"Target {target.name}: {status} ({probe.latency_ms}ms)")
        return stored

    async def _broadcast(self, target: Target, probe: ProbeResult, stored: CheckResult):
        event = CheckResultEvent(
            targetId=target.id,
            name=target.name,
            type=target.type,
            status=probe.status,
            latency=probe.latency_ms,
            code=probe.code or 0,
            at=_utc_iso(),
        )
        try:
            await self.broadcaster.publish_check_result(event)
        except Exception as e:
            logger.warning(f"Live broadcast for target {target.name} failed: {e}")

    async def _notify(self, target: Target, new_status: str, probe: ProbeResult):
        """Fan a transition out to the legacy target e-mail and every enabled channel."""
        event = TransitionEvent(
            target_name=target.name,
            target_type=target.type,
            target_endpoint=target.endpoint,
            status=new_status,
            message=probe.message if new_status == "DOWN" else None,
            latency=probe.latency_ms,
            timestamp=_utc_iso(),
        )
        logger.info(f"Target {target.name} is now {new_status}")

        # Channels are read fresh so enable/disable applies immediately
        try:
            channels = await self.channels.list_enabled()
        except Exception as e:
            logger.error(f"Failed to load notification channels: {e}")
            channels = []

        await asyncio.gather(
            self.alerter.send_legacy_alert(target.alert_email, event),
            self.alerter.dispatch(event, channels),
        )

    async def _cleanup_old_records(self):
        """Delete results older than the retention window."""
        try:
            cutoff = datetime.utcnow() - timedelta(days=settings.results_retention_days)
            removed = await self.results.purge_older_than(cutoff)
            logger.info(f"Cleaned up {removed} old result records")
        except Exception as e:
            logger.error(f"Error cleaning up records: {e}")


# Global instance
scheduler_service = SchedulerService()
