"""
Webhook repository.

Handles webhook log database operations.
"""
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from platform_sync.models.integration_models import WebhookLog
from platform_sync.utils.dates import utcnow


class WebhookRepository:
    """Repository for webhook log operations."""

    def __init__(self, db: Session):
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def create_webhook_log(
        self,
        platform: str,
        payload_hash: str,
        payload: Optional[Dict[str, Any]],
        restaurant_id: Optional[int] = None,
        event_type: Optional[str] = None,
        status: str = "pending"
    ) -> WebhookLog:
        """
        Create a webhook log record.

        Args:
            platform: Platform the webhook came from
            payload_hash: SHA-256 of the canonical payload
            payload: Full webhook payload
            restaurant_id: Restaurant the route addressed
            event_type: Platform event name, when the platform sends one
            status: Initial status (default: "pending")

        Returns:
            Created WebhookLog record
        """
        log = WebhookLog(
            platform=platform,
            restaurant_id=restaurant_id,
            event_type=event_type,
            payload_hash=payload_hash,
            payload=payload,
            status=status
        )
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)
        return log

    def update_webhook_log(
        self,
        log: WebhookLog,
        status: str,
        error_message: Optional[str] = None,
        external_order_id: Optional[str] = None
    ) -> WebhookLog:
        log.status = status
        log.error_message = error_message
        if external_order_id:
            log.external_order_id = external_order_id
        log.processed_at = utcnow()
        self.db.commit()
        self.db.refresh(log)
        return log
