"""External collaborator protocols and synthetic in-memory providers."""

from storage_dispatch.providers.interfaces import (
    AssetRegistry,
    CarbonForecastProvider,
    CommandInterface,
    ExternalOptimizer,
    ForecastProvider,
    ProductionForecastProvider,
)
from storage_dispatch.providers.synthetic import (
    InMemoryAssetRegistry,
    PricePattern,
    RecordingCommandInterface,
    SyntheticForecastProvider,
)

__all__ = [
    "ForecastProvider",
    "CarbonForecastProvider",
    "ProductionForecastProvider",
    "AssetRegistry",
    "CommandInterface",
    "ExternalOptimizer",
    "SyntheticForecastProvider",
    "InMemoryAssetRegistry",
    "RecordingCommandInterface",
    "PricePattern",
]
