"""
Periodic Celery tasks. Each one walks the active integrations and queues a
per-platform task; the schedule lives in celery_app.py.
"""
import logging
from typing import Any, Dict

from platform_sync.celery_app import celery_app
from platform_sync.constants.sync import SyncType
from platform_sync.repositories.integration_repository import IntegrationRepository
from platform_sync.services.platforms import ADAPTER_CLASSES
from platform_sync.tasks.sync_tasks import DatabaseTask, pull_platform_orders, sync_platform_menu

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="platform_sync.tasks.scheduled_tasks.schedule_menu_sync"
)
def schedule_menu_sync(self) -> Dict[str, Any]:
    """
    Queue an incremental menu sync for every active integration.

    Returns:
        Dict with scheduling statistics
    """
    logger.info("Starting scheduled menu sync")
    integrations = IntegrationRepository(self.db).list_active()
    queued = []
    for config in integrations:
        if config.platform not in ADAPTER_CLASSES:
            logger.warning(f"Skipping integration {config.id}: unknown platform {config.platform}")
            continue
        sync_platform_menu.delay(
            config.restaurant_id, config.platform, {"sync_type": SyncType.INCREMENTAL}
        )
        queued.append(f"{config.restaurant_id}:{config.platform}")

    logger.info(f"Queued {len(queued)} menu sync(s) for {len(integrations)} active integration(s)")
    return {"total_integrations": len(integrations), "queued": queued}


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="platform_sync.tasks.scheduled_tasks.schedule_order_pull"
)
def schedule_order_pull(self) -> Dict[str, Any]:
    """Queue an order pull for every active integration on a pull-capable platform."""
    integrations = IntegrationRepository(self.db).list_active()
    queued = []
    for config in integrations:
        adapter_class = ADAPTER_CLASSES.get(config.platform)
        if adapter_class is None or not adapter_class.supports_pull:
            continue
        pull_platform_orders.delay(config.restaurant_id, config.platform)
        queued.append(f"{config.restaurant_id}:{config.platform}")

    logger.info(f"Queued {len(queued)} order pull(s)")
    return {"total_integrations": len(integrations), "queued": queued}
