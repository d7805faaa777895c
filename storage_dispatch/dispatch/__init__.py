"""Setpoint dispatch for active optimization results."""

from storage_dispatch.dispatch.dispatcher import (
    DispatchOutcome,
    Dispatcher,
    DispatchStatus,
)

__all__ = ["Dispatcher", "DispatchOutcome", "DispatchStatus"]
