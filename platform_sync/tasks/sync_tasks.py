"""
Celery tasks that push internal changes to the delivery platforms and pull
orders back from them.
"""
import logging
from typing import Any, Dict, Optional

from celery import Task
from sqlalchemy.exc import SQLAlchemyError

from platform_sync.celery_app import celery_app
from platform_sync.db.session import SessionLocal
from platform_sync.schemas.sync_schemas import FanOutResult, SyncOptions, SyncResult
from platform_sync.services.catalog_sync import CatalogSyncService
from platform_sync.services.order_ingest import OrderIngestor
from platform_sync.services.order_sync import OrderSyncOrchestrator

logger = logging.getLogger(__name__)


class DatabaseTask(Task):
    """Base task with database session management."""
    _db = None

    @property
    def db(self):
        if self._db is None:
            self._db = SessionLocal()
        return self._db

    def after_return(self, *args, **kwargs):
        if self._db is not None:
            self._db.close()
            self._db = None


def _fanout_summary(result: FanOutResult) -> Dict[str, Any]:
    summary = result.model_dump()
    summary["pushed_platforms"] = result.pushed_platforms
    summary["failed_platforms"] = result.failed_platforms
    return summary


def _sync_summary(result: SyncResult) -> Dict[str, Any]:
    summary = result.model_dump()
    summary["success"] = result.success
    return summary


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="platform_sync.tasks.sync_tasks.propagate_order_status",
    max_retries=3
)
def propagate_order_status(
    self,
    order_id: int,
    new_status: str,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Push an internal order status change to every platform carrying the order.

    Per-platform failures are recorded by the orchestrator and returned in the
    result; only database failures make the task retry.
    """
    try:
        logger.info(f"Propagating status '{new_status}' of order {order_id}")
        result = OrderSyncOrchestrator(self.db).propagate_status_change(order_id, new_status, details)
        return _fanout_summary(result)
    except SQLAlchemyError as e:
        logger.error(f"Database error propagating order {order_id}: {e}")
        self.db.rollback()
        raise self.retry(exc=e, countdown=2 ** self.request.retries)


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="platform_sync.tasks.sync_tasks.cancel_platform_order",
    max_retries=3
)
def cancel_platform_order(self, order_id: int, reason: str) -> Dict[str, Any]:
    """Cancel an order on every platform carrying it."""
    try:
        logger.info(f"Cancelling order {order_id} on platforms: {reason}")
        result = OrderSyncOrchestrator(self.db).cancel_order(order_id, reason)
        return _fanout_summary(result)
    except SQLAlchemyError as e:
        logger.error(f"Database error cancelling order {order_id}: {e}")
        self.db.rollback()
        raise self.retry(exc=e, countdown=2 ** self.request.retries)


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="platform_sync.tasks.sync_tasks.update_menu_item_availability",
    max_retries=3
)
def update_menu_item_availability(
    self,
    restaurant_id: int,
    product_id: int,
    available: bool
) -> Dict[str, Any]:
    try:
        result = OrderSyncOrchestrator(self.db).update_menu_item_availability(
            restaurant_id, product_id, available
        )
        return _fanout_summary(result)
    except SQLAlchemyError as e:
        logger.error(f"Database error toggling product {product_id}: {e}")
        self.db.rollback()
        raise self.retry(exc=e, countdown=2 ** self.request.retries)


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="platform_sync.tasks.sync_tasks.update_category_availability",
    max_retries=3
)
def update_category_availability(
    self,
    restaurant_id: int,
    category_id: int,
    available: bool
) -> Dict[str, Any]:
    try:
        result = OrderSyncOrchestrator(self.db).update_category_availability(
            restaurant_id, category_id, available
        )
        return _fanout_summary(result)
    except SQLAlchemyError as e:
        logger.error(f"Database error toggling category {category_id}: {e}")
        self.db.rollback()
        raise self.retry(exc=e, countdown=2 ** self.request.retries)


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="platform_sync.tasks.sync_tasks.sync_platform_menu",
    max_retries=2
)
def sync_platform_menu(
    self,
    restaurant_id: int,
    platform: str,
    options: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Push a restaurant's categories and products to one platform.

    Args:
        restaurant_id: Restaurant whose catalog is pushed
        platform: Platform id
        options: Serialized SyncOptions

    Returns:
        Serialized SyncResult
    """
    try:
        sync_options = SyncOptions(**(options or {}))
        logger.info(
            f"Starting {sync_options.sync_type} menu sync for restaurant {restaurant_id} on {platform}"
        )
        result = CatalogSyncService(self.db).sync_menu(restaurant_id, platform, sync_options)
        logger.info(
            f"Menu sync for restaurant {restaurant_id} on {platform} finished: "
            f"{result.synced} synced, {result.failed} failed"
        )
        return _sync_summary(result)
    except SQLAlchemyError as e:
        logger.error(f"Database error syncing menu of restaurant {restaurant_id} on {platform}: {e}")
        self.db.rollback()
        raise self.retry(exc=e, countdown=2 ** self.request.retries)


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="platform_sync.tasks.sync_tasks.sync_platform_availability",
    max_retries=2
)
def sync_platform_availability(self, restaurant_id: int, platform: str) -> Dict[str, Any]:
    try:
        result = CatalogSyncService(self.db).sync_availability(restaurant_id, platform)
        return _sync_summary(result)
    except SQLAlchemyError as e:
        logger.error(f"Database error syncing availability of restaurant {restaurant_id} on {platform}: {e}")
        self.db.rollback()
        raise self.retry(exc=e, countdown=2 ** self.request.retries)


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="platform_sync.tasks.sync_tasks.pull_platform_orders",
    max_retries=2
)
def pull_platform_orders(self, restaurant_id: int, platform: str) -> Dict[str, Any]:
    """Fetch and ingest recent orders from a pull-capable platform."""
    try:
        result = OrderIngestor(self.db).pull_orders(restaurant_id, platform)
        return _sync_summary(result)
    except SQLAlchemyError as e:
        logger.error(f"Database error pulling {platform} orders for restaurant {restaurant_id}: {e}")
        self.db.rollback()
        raise self.retry(exc=e, countdown=2 ** self.request.retries)
