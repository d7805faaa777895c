"""Dispatcher: sends the current slot's setpoint for every active result."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from storage_dispatch.domain.errors import CommandDispatchFailure
from storage_dispatch.domain.models import DispatchAction, OptimizationResult
from storage_dispatch.providers.interfaces import CommandInterface
from storage_dispatch.scheduling.state import ActiveResultStore

logger = logging.getLogger(__name__)


class DispatchStatus(str, Enum):
    """Outcome of one asset's dispatch attempt."""

    SENT = "sent"
    FAILED = "failed"
    IDLE = "idle"  # Active slot has zero power
    NO_ENTRY = "no_entry"  # Schedule not started or exhausted


@dataclass(frozen=True)
class DispatchOutcome:
    site_id: str
    asset_id: str
    status: DispatchStatus
    action: DispatchAction = DispatchAction.IDLE
    power_kw: float = 0.0
    error: str | None = None


class Dispatcher:
    """Emits setpoints from active results to the command interface."""

    def __init__(
        self,
        results: ActiveResultStore,
        commands: CommandInterface,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.results = results
        self.commands = commands
        self.clock = clock

    async def dispatch_result(
        self, result: OptimizationResult, now: datetime
    ) -> DispatchOutcome:
        """Send the command for the slot containing ``now``, if any."""
        entry = result.entry_at(now)
        if entry is None:
            return DispatchOutcome(
                result.site_id, result.asset_id, DispatchStatus.NO_ENTRY
            )

        action = entry.action
        if action == DispatchAction.IDLE:
            return DispatchOutcome(result.site_id, result.asset_id, DispatchStatus.IDLE)

        params = {
            "power_kw": abs(entry.power_kw),
            "duration_seconds": math.ceil((entry.slot.end - now).total_seconds()),
            "strategy": result.strategy_id,
            "result_id": result.result_id,
        }
        try:
            await self.commands.send_command(result.asset_id, action.value, params)
        except Exception as exc:
            failure = CommandDispatchFailure(result.asset_id, str(exc))
            logger.error("Dispatch failed at site %s: %s", result.site_id, failure)
            return DispatchOutcome(
                result.site_id,
                result.asset_id,
                DispatchStatus.FAILED,
                action=action,
                power_kw=entry.power_kw,
                error=str(failure),
            )

        return DispatchOutcome(
            result.site_id,
            result.asset_id,
            DispatchStatus.SENT,
            action=action,
            power_kw=entry.power_kw,
        )

    async def dispatch_cycle(self, now: datetime | None = None) -> list[DispatchOutcome]:
        """Dispatch every active result concurrently.

        Reads the active results without waiting on in-flight commits; a
        failure for one asset does not affect the others.
        """
        moment = now or self.clock()
        active = self.results.all()
        if not active:
            return []
        outcomes = await asyncio.gather(
            *(self.dispatch_result(result, moment) for result in active)
        )
        sent = sum(1 for o in outcomes if o.status == DispatchStatus.SENT)
        logger.debug("Dispatch cycle at %s: %d/%d sent", moment, sent, len(outcomes))
        return list(outcomes)
