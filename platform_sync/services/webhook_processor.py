"""Service for processing inbound platform webhooks."""

import hashlib
import json
import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from platform_sync.constants.sync import WebhookStatus
from platform_sync.core.exceptions import IngestError
from platform_sync.models.integration_models import IntegrationConfig, WebhookLog
from platform_sync.repositories.webhook_repository import WebhookRepository
from platform_sync.services.integration_registry import IntegrationRegistry
from platform_sync.services.order_ingest import OrderIngestor, unwrap
from platform_sync.services.platforms import ADAPTER_CLASSES, PlatformCredentials

logger = logging.getLogger(__name__)

ORDER_EVENT_PREFIX = "order."


class WebhookProcessor:
    """Validates, logs and ingests platform webhooks."""

    def __init__(self, db: Session, registry: Optional[IntegrationRegistry] = None):
        self.db = db
        self.registry = registry or IntegrationRegistry(db)
        self.ingestor = OrderIngestor(db, self.registry)
        self.webhook_repo = WebhookRepository(db)

    def validate_webhook_signature(
        self,
        config: IntegrationConfig,
        payload: bytes,
        signature: Optional[str]
    ) -> bool:
        """
        Validate a webhook signature with the platform's scheme.

        Args:
            config: Integration the webhook is addressed to
            payload: Raw request body as bytes
            signature: Signature header value, if any

        Returns:
            True if the signature is valid or the platform does not sign
        """
        adapter_class = ADAPTER_CLASSES[config.platform]
        with adapter_class(PlatformCredentials.from_config(config)) as adapter:
            is_valid = adapter.verify_webhook_signature(payload, signature)
        if not is_valid:
            logger.warning(
                f"Invalid {config.platform} webhook signature for restaurant {config.restaurant_id}"
            )
        return is_valid

    def calculate_payload_hash(self, payload: Any) -> str:
        """Calculate SHA256 hash of payload for deduplication."""
        payload_str = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(payload_str.encode()).hexdigest()

    def is_duplicate_event(self, platform: str, restaurant_id: int, payload_hash: str) -> bool:
        existing = self.db.query(WebhookLog).filter(
            WebhookLog.platform == platform,
            WebhookLog.restaurant_id == restaurant_id,
            WebhookLog.payload_hash == payload_hash,
            WebhookLog.status == WebhookStatus.COMPLETED
        ).first()
        if existing:
            logger.info(f"Duplicate {platform} webhook {payload_hash[:12]} already processed")
            return True
        return False

    def log_webhook_event(
        self,
        platform: str,
        restaurant_id: int,
        payload: Dict[str, Any],
        event_type: Optional[str] = None
    ) -> WebhookLog:
        payload_hash = self.calculate_payload_hash(payload)
        log_entry = self.webhook_repo.create_webhook_log(
            platform=platform,
            payload_hash=payload_hash,
            payload=payload,
            restaurant_id=restaurant_id,
            event_type=event_type,
            status=WebhookStatus.PENDING,
        )
        logger.info(f"Logged {platform} webhook {log_entry.id} ({event_type or 'order'})")
        return log_entry

    def process(
        self,
        platform: str,
        restaurant_id: int,
        payload: Dict[str, Any]
    ) -> Tuple[WebhookLog, Optional[int]]:
        """
        Log and ingest one webhook delivery.

        Args:
            platform: Platform id from the route
            restaurant_id: Restaurant id from the route
            payload: Parsed JSON body (possibly an encrypted envelope)

        Returns:
            (webhook log, internal order id or None for non-order events)

        Raises:
            IngestError: The payload could not be ingested; the log is marked failed
        """
        adapter_class = ADAPTER_CLASSES[platform]
        event_type, _ = unwrap(adapter_class, payload)
        log_entry = self.log_webhook_event(platform, restaurant_id, payload, event_type)

        if event_type and not event_type.startswith(ORDER_EVENT_PREFIX):
            logger.info(f"Acknowledged {platform} event '{event_type}' without processing")
            self.webhook_repo.update_webhook_log(log_entry, WebhookStatus.COMPLETED)
            return log_entry, None

        try:
            order = self.ingestor.parse(platform, payload, restaurant_id)
            record = self.ingestor.store(order, restaurant_id)
        except IngestError as e:
            logger.warning(f"{platform} webhook {log_entry.id} rejected: {e}")
            self.db.rollback()
            self.webhook_repo.update_webhook_log(log_entry, WebhookStatus.FAILED, error_message=str(e))
            raise

        self.webhook_repo.update_webhook_log(
            log_entry, WebhookStatus.COMPLETED, external_order_id=order.external_order_id
        )
        return log_entry, record.internal_order_id
