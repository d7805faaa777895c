"""Per-site performance tracking.

Accumulates projected savings and battery cycle usage from every applied
optimization result, and keeps a running forecast accuracy score when
realized values are reported.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import MutableMapping
from datetime import datetime

from storage_dispatch.domain.models import OptimizationResult, PerformanceRecord

logger = logging.getLogger(__name__)


class PerformanceTracker:
    """Additive per-site performance records.

    Updates for one site are serialized; records are only reset through
    :meth:`reset`.
    """

    def __init__(
        self,
        storage: MutableMapping[str, PerformanceRecord] | None = None,
        accuracy_smoothing: float = 0.3,
    ) -> None:
        """Initialize the tracker.

        Args:
            storage: Mapping of site id to record.
            accuracy_smoothing: EMA weight of a new accuracy sample (0-1].
        """
        if not 0 < accuracy_smoothing <= 1:
            raise ValueError(
                f"accuracy_smoothing must be in (0, 1], got {accuracy_smoothing}"
            )
        self._storage: MutableMapping[str, PerformanceRecord] = (
            storage if storage is not None else {}
        )
        self.accuracy_smoothing = accuracy_smoothing
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, site_id: str) -> asyncio.Lock:
        lock = self._locks.get(site_id)
        if lock is None:
            lock = self._locks[site_id] = asyncio.Lock()
        return lock

    def get(self, site_id: str) -> PerformanceRecord:
        """Current record, or an all-zero record for an unknown site."""
        return self._storage.get(site_id) or PerformanceRecord(site_id=site_id)

    async def apply(self, result: OptimizationResult) -> PerformanceRecord:
        """Add an applied result's value and cycle usage to its site."""
        async with self._lock(result.site_id):
            current = self.get(result.site_id)
            updated = current.model_copy(
                update={
                    "total_savings": round(
                        current.total_savings + result.projected_value, 6
                    ),
                    "cycles_used": round(
                        current.cycles_used + result.estimated_cycles, 6
                    ),
                    "last_optimization_time": result.generated_at,
                }
            )
            self._storage[result.site_id] = updated
            return updated

    async def record_realized(
        self,
        site_id: str,
        forecast_value: float,
        realized_value: float,
        observed_at: datetime | None = None,
    ) -> PerformanceRecord:
        """Fold a realized-vs-forecast sample into the forecast accuracy.

        Accuracy of one sample is ``1 - |realized - forecast| / |forecast|``,
        floored at 0. The first sample sets the score; later samples are
        blended in as an exponential moving average.
        """
        scale = max(abs(forecast_value), 1e-9)
        sample = max(0.0, 1 - abs(realized_value - forecast_value) / scale)

        async with self._lock(site_id):
            current = self.get(site_id)
            if current.forecast_accuracy is None:
                accuracy = sample
            else:
                alpha = self.accuracy_smoothing
                accuracy = alpha * sample + (1 - alpha) * current.forecast_accuracy
            updated = current.model_copy(
                update={"forecast_accuracy": round(min(accuracy, 1.0), 6)}
            )
            self._storage[site_id] = updated
            logger.debug(
                "Forecast accuracy for site %s now %.3f (sample %.3f at %s)",
                site_id,
                updated.forecast_accuracy,
                sample,
                observed_at,
            )
            return updated

    def reset(self, site_id: str) -> None:
        """Drop a site's record (explicit external action only)."""
        self._storage.pop(site_id, None)
