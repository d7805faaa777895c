"""Strategy evaluation, candidate selection and active-result state."""

from storage_dispatch.scheduling.scheduler import Scheduler, SiteRunReport
from storage_dispatch.scheduling.selector import select_best, selection_key
from storage_dispatch.scheduling.state import (
    ActiveResultStore,
    StrategyEnablementStore,
)

__all__ = [
    "Scheduler",
    "SiteRunReport",
    "select_best",
    "selection_key",
    "ActiveResultStore",
    "StrategyEnablementStore",
]
