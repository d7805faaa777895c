"""Runtime settings and logging setup.

Settings are read from ``STORAGE_DISPATCH_*`` environment variables (or a
``.env`` file) with the defaults below.
"""

from __future__ import annotations

import logging

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class SchedulerSettings(BaseSettings):
    """Scheduler, trigger and dispatch settings."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_DISPATCH_",
        env_file=".env",
        extra="ignore",
    )

    slot_minutes: int = Field(default=60, gt=0, le=1440)
    horizon_slots: int = Field(default=24, gt=0, le=2016)
    reoptimize_interval_seconds: float = Field(default=900.0, gt=0)
    ai_timeout_seconds: float = Field(default=3.0, gt=0, le=30)
    price_change_threshold: float = Field(default=0.2, ge=0)
    soc_delta_threshold_percent: float = Field(default=10.0, ge=0, le=100)
    dispatch_after_optimization: bool = True
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_slot_length(self) -> SchedulerSettings:
        if 1440 % self.slot_minutes != 0:
            raise ValueError(
                f"slot_minutes must divide a day evenly, got {self.slot_minutes}"
            )
        return self


def configure_logging(level: str | int = "INFO") -> None:
    """Configure root logging for the scheduler process."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("storage_dispatch").setLevel(level)
