"""HTTP surface and service facade."""

from storage_dispatch.api.services import StorageOptimizationService

__all__ = ["StorageOptimizationService"]
