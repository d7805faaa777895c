"""Storage physics and constraint simulation."""

from storage_dispatch.battery.simulator import (
    SimulationOutcome,
    StorageModel,
    arbitrage_value,
    simulate,
)

__all__ = [
    "StorageModel",
    "SimulationOutcome",
    "simulate",
    "arbitrage_value",
]
