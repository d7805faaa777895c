"""Exception hierarchy for the storage dispatch scheduler."""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for scheduler errors."""


class ConfigurationError(SchedulerError, ValueError):
    """Invalid configuration, rejected before any state is mutated.

    Raised for unknown strategy names, missing asset specifications and
    strategies whose value units cannot be compared within a site.
    """


class ForecastUnavailable(SchedulerError):
    """A forecast series could not be obtained for a run."""

    def __init__(self, kind: str, site_id: str, reason: str = "") -> None:
        self.kind = kind
        self.site_id = site_id
        message = f"{kind} forecast unavailable for site {site_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ExternalCallFailure(SchedulerError):
    """The external AI optimizer timed out, failed or returned bad data."""


class CommandDispatchFailure(SchedulerError):
    """A setpoint command could not be delivered to an asset."""

    def __init__(self, asset_id: str, reason: str) -> None:
        self.asset_id = asset_id
        super().__init__(f"command to asset {asset_id} failed: {reason}")
