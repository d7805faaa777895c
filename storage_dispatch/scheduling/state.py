"""Per-site and per-(site, asset) scheduler state.

Two small stores replace ad hoc global maps:
- :class:`StrategyEnablementStore`: ordered enabled strategies per site
- :class:`ActiveResultStore`: the single active result per (site, asset)

Both take an injectable mapping so tests and embedding applications control
where the state lives.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import MutableMapping

from storage_dispatch.domain.models import OptimizationResult

logger = logging.getLogger(__name__)

AssetKey = tuple[str, str]


class StrategyEnablementStore:
    """Enabled strategy names per site, in enablement order."""

    def __init__(self, storage: MutableMapping[str, list[str]] | None = None) -> None:
        self._storage: MutableMapping[str, list[str]] = (
            storage if storage is not None else {}
        )

    def get(self, site_id: str) -> list[str]:
        return list(self._storage.get(site_id, []))

    def enable(self, site_id: str, name: str) -> bool:
        """Append ``name`` to the site's list. False if already enabled."""
        current = self.get(site_id)
        if name in current:
            return False
        current.append(name)
        self._storage[site_id] = current
        return True

    def disable(self, site_id: str, name: str) -> bool:
        """Remove ``name`` from the site's list. False if it was not enabled."""
        current = self.get(site_id)
        if name not in current:
            return False
        current.remove(name)
        self._storage[site_id] = current
        return True

    def sites(self) -> list[str]:
        """Sites with at least one enabled strategy."""
        return [site for site, names in self._storage.items() if names]


class ActiveResultStore:
    """Holds exactly one active OptimizationResult per (site, asset).

    Commits are serialized per key. A result only replaces the active one when
    its run sequence is newer, so a slow run that started earlier can never
    overwrite the result of a run that started later.
    """

    def __init__(
        self, storage: MutableMapping[AssetKey, OptimizationResult] | None = None
    ) -> None:
        self._storage: MutableMapping[AssetKey, OptimizationResult] = (
            storage if storage is not None else {}
        )
        self._locks: dict[AssetKey, asyncio.Lock] = {}
        self._sequence = itertools.count(1)

    def next_sequence(self) -> int:
        """Monotonic run sequence number, taken when a run starts."""
        return next(self._sequence)

    def _lock(self, key: AssetKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def get(self, site_id: str, asset_id: str) -> OptimizationResult | None:
        """Active result for the asset. Never blocks on an in-flight commit."""
        return self._storage.get((site_id, asset_id))

    def all(self) -> list[OptimizationResult]:
        return list(self._storage.values())

    def for_site(self, site_id: str) -> list[OptimizationResult]:
        return [r for (site, _), r in self._storage.items() if site == site_id]

    async def commit(self, result: OptimizationResult) -> bool:
        """Make ``result`` active unless a newer run already committed.

        Returns:
            True if the result became active.
        """
        key = (result.site_id, result.asset_id)
        async with self._lock(key):
            current = self._storage.get(key)
            if current is not None and current.run_sequence >= result.run_sequence:
                logger.info(
                    "Discarding stale result %s for %s/%s (run %d <= active run %d)",
                    result.result_id,
                    result.site_id,
                    result.asset_id,
                    result.run_sequence,
                    current.run_sequence,
                )
                return False
            self._storage[key] = result
            return True

    def clear(self, site_id: str, asset_id: str) -> None:
        self._storage.pop((site_id, asset_id), None)
