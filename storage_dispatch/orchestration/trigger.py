"""Periodic and event-driven re-optimization.

The periodic loop runs every site with an enabled strategy and then a
dispatch cycle. Event hooks start a single-site run out of band when the
event is significant enough; those runs are tracked tasks whose errors are
logged.
"""

from __future__ import annotations

import asyncio
import logging

from storage_dispatch.config import SchedulerSettings
from storage_dispatch.dispatch.dispatcher import Dispatcher
from storage_dispatch.scheduling.scheduler import Scheduler, SiteRunReport

logger = logging.getLogger(__name__)


class ReoptimizationTrigger:
    """Drives the scheduler on a timer and on external events."""

    def __init__(
        self,
        scheduler: Scheduler,
        dispatcher: Dispatcher | None = None,
        settings: SchedulerSettings | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.dispatcher = dispatcher
        self.settings = settings or scheduler.settings
        self._stop_event = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[SiteRunReport]] = set()

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def pending_runs(self) -> int:
        return len(self._pending)

    # -------------------------------------------------------------------------
    # Periodic loop
    # -------------------------------------------------------------------------

    async def tick(self) -> list[SiteRunReport]:
        """One periodic cycle: optimize every site, then dispatch."""
        reports = await self.scheduler.run_all_sites()
        if self.dispatcher is not None and self.settings.dispatch_after_optimization:
            await self.dispatcher.dispatch_cycle()
        return reports

    async def _run_loop(self) -> None:
        interval = self.settings.reoptimize_interval_seconds
        logger.info("Re-optimization loop started (every %.0fs)", interval)
        while not self._stop_event.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Periodic re-optimization failed")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
        logger.info("Re-optimization loop stopped")

    def start(self) -> None:
        """Start the periodic loop on the running event loop."""
        if self.running:
            return
        self._stop_event.clear()
        self._loop_task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Stop the loop and wait for out-of-band runs to finish."""
        self._stop_event.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        await self.drain()

    async def drain(self) -> None:
        """Wait for every pending out-of-band run."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Event hooks
    # -------------------------------------------------------------------------

    def _launch(self, site_id: str, reason: str) -> asyncio.Task[SiteRunReport]:
        logger.info("Re-optimizing site %s: %s", site_id, reason)
        task = asyncio.create_task(self.scheduler.run_site(site_id))
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[SiteRunReport]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Out-of-band re-optimization failed: %s", exc)

    def notify_strategy_changed(
        self, site_id: str
    ) -> asyncio.Task[SiteRunReport] | None:
        """A strategy was enabled or disabled at the site."""
        if not self.scheduler.enablement.get(site_id):
            return None
        return self._launch(site_id, "strategy set changed")

    def notify_price_change(
        self, site_id: str, relative_change: float
    ) -> asyncio.Task[SiteRunReport] | None:
        """Forecast prices moved by ``relative_change`` (0.25 = 25%)."""
        if abs(relative_change) < self.settings.price_change_threshold:
            return None
        return self._launch(
            site_id, f"price change of {relative_change:+.1%}"
        )

    def notify_soc_update(
        self, site_id: str, asset_id: str, soc_percent: float
    ) -> asyncio.Task[SiteRunReport] | None:
        """Live SoC reported for an asset.

        Compares against the SoC the active result was planned from.
        """
        active = self.scheduler.results.get(site_id, asset_id)
        if active is None:
            return None
        delta = abs(soc_percent - active.initial_soc_percent)
        if delta < self.settings.soc_delta_threshold_percent:
            return None
        return self._launch(
            site_id, f"SoC of {asset_id} drifted {delta:.1f} points"
        )
