"""
Integration management endpoints: menu sync triggers and connection tests.
"""
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from platform_sync.db.session import get_db
from platform_sync.schemas.sync_schemas import SyncOptions
from platform_sync.services.order_sync import OrderSyncOrchestrator
from platform_sync.services.platforms import ADAPTER_CLASSES
from platform_sync.tasks.sync_tasks import sync_platform_availability, sync_platform_menu

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["Integrations"])


@router.post("/{restaurant_id}/{platform}/sync")
def trigger_menu_sync(
    restaurant_id: int,
    platform: str,
    options: Optional[SyncOptions] = None,
    availability_only: bool = Query(False, description="Only push product availability")
):
    """Queue a catalog (or availability-only) sync for one platform."""
    if platform not in ADAPTER_CLASSES:
        raise HTTPException(status_code=404, detail=f"Unknown platform {platform}")

    options = options or SyncOptions()
    if availability_only:
        task = sync_platform_availability.delay(restaurant_id, platform)
    else:
        task = sync_platform_menu.delay(restaurant_id, platform, options.model_dump())
    logger.info(f"Queued {platform} sync for restaurant {restaurant_id}: task {task.id}")
    return {
        "status": "queued",
        "task_id": task.id,
        "restaurant_id": restaurant_id,
        "platform": platform,
    }


@router.get("/{restaurant_id}/test")
def test_integrations(restaurant_id: int, db: Session = Depends(get_db)) -> Dict[str, bool]:
    """Test connectivity of every active integration of a restaurant."""
    return OrderSyncOrchestrator(db).test_all_integrations(restaurant_id)
