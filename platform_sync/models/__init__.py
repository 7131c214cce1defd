from platform_sync.models.catalog_models import Category, CategoryMapping, Product, ProductMapping
from platform_sync.models.integration_models import IntegrationConfig, SyncAttemptLog, WebhookLog
from platform_sync.models.order_model import (
    ExternalOrderItem,
    ExternalOrderRecord,
    Order,
    OrderItem,
)

__all__ = [
    "Category",
    "CategoryMapping",
    "Product",
    "ProductMapping",
    "IntegrationConfig",
    "SyncAttemptLog",
    "WebhookLog",
    "ExternalOrderItem",
    "ExternalOrderRecord",
    "Order",
    "OrderItem",
]
