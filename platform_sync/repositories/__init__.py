"""
Repository layer for database operations.

This package provides specialized repositories for different domains:
- IntegrationRepository: per-restaurant platform configuration
- ProductMappingRepository / CategoryMappingRepository: catalog id mappings
- CatalogRepository: internal categories and products
- ExternalOrderRepository: orders mirrored from platforms
- SyncLogRepository: sync attempt logs
- WebhookRepository: webhook logs
"""
from platform_sync.repositories.catalog_repository import CatalogRepository
from platform_sync.repositories.external_order_repository import ExternalOrderRepository
from platform_sync.repositories.integration_repository import IntegrationRepository
from platform_sync.repositories.mapping_repository import CategoryMappingRepository, ProductMappingRepository
from platform_sync.repositories.sync_log_repository import SyncLogRepository
from platform_sync.repositories.webhook_repository import WebhookRepository

__all__ = [
    "CatalogRepository",
    "CategoryMappingRepository",
    "ExternalOrderRepository",
    "IntegrationRepository",
    "ProductMappingRepository",
    "SyncLogRepository",
    "WebhookRepository",
]
