"""Periodic and event-driven re-optimization."""

from storage_dispatch.orchestration.trigger import ReoptimizationTrigger

__all__ = ["ReoptimizationTrigger"]
