"""API endpoints for receiving platform order webhooks."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from platform_sync.core.exceptions import IngestError
from platform_sync.db.session import get_db
from platform_sync.repositories.integration_repository import IntegrationRepository
from platform_sync.services.platforms import ADAPTER_CLASSES
from platform_sync.services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)
router = APIRouter()


def _active_config(db: Session, platform: str, restaurant_id: int):
    if platform not in ADAPTER_CLASSES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown platform {platform}"
        )
    config = IntegrationRepository(db).get(restaurant_id, platform)
    if not config:
        logger.error(f"No {platform} integration for restaurant {restaurant_id}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Integration not found"
        )
    if not config.is_active:
        logger.warning(f"{platform} integration for restaurant {restaurant_id} is not active")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Integration is not active"
        )
    return config


@router.post("/webhooks/{platform}/{restaurant_id}")
async def receive_platform_webhook(
    platform: str,
    restaurant_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Receive an order webhook from a delivery platform.

    The order is ingested synchronously; re-deliveries are idempotent.

    Args:
        platform: Platform id (migros-yemek, yemeksepeti, getir, trendyol-go)
        restaurant_id: Restaurant the webhook is registered for
        request: FastAPI request object
        db: Database session

    Returns:
        Acknowledgment with the internal order id
    """
    try:
        config = _active_config(db, platform, restaurant_id)
        adapter_class = ADAPTER_CLASSES[platform]
        raw_body = await request.body()
        processor = WebhookProcessor(db)

        signature = request.headers.get(adapter_class.signature_header)
        if not processor.validate_webhook_signature(config, raw_body, signature):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook signature"
            )

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Invalid JSON payload from {platform}: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid JSON payload"
            )
        if not isinstance(payload, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Payload must be a JSON object"
            )

        payload_hash = processor.calculate_payload_hash(payload)
        if processor.is_duplicate_event(platform, restaurant_id, payload_hash):
            return {
                "status": "ok",
                "message": "Duplicate event - already processed",
            }

        try:
            log_entry, order_id = processor.process(platform, restaurant_id, payload)
        except IngestError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(e)
            )

        return {
            "status": "ok",
            "message": "Webhook processed" if order_id else "Event acknowledged",
            "webhook_log_id": log_entry.id,
            "order_id": order_id,
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing {platform} webhook: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error processing webhook: {str(e)}"
        )


@router.get("/webhooks/{platform}/{restaurant_id}/health")
def webhook_health_check(platform: str, restaurant_id: int, db: Session = Depends(get_db)):
    """Health check endpoint for the webhook receiver."""
    config = _active_config(db, platform, restaurant_id)
    return {
        "status": "healthy",
        "platform": platform,
        "restaurant_id": restaurant_id,
        "signed": bool(config.webhook_secret),
        "last_sync_at": config.last_sync_at.isoformat() if config.last_sync_at else None,
        "sync_status": config.sync_status,
    }
