"""Performance tracking for applied optimization results."""

from storage_dispatch.metrics.performance import PerformanceTracker

__all__ = ["PerformanceTracker"]
