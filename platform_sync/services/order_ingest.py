"""
Inbound order ingestor.

Turns a platform-native order payload (webhook body or pulled order) into an
ExternalOrderRecord plus the internal Order it feeds. Ingestion is an
idempotent upsert keyed by (platform, external_order_id): delivering the same
payload again updates the existing rows and replaces their line items.
"""
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from platform_sync.constants.order_status import OrderStatus
from platform_sync.constants.sync import SyncType
from platform_sync.core.config import settings
from platform_sync.core.exceptions import DecodeError, IngestError, PlatformSyncError
from platform_sync.models.integration_models import IntegrationConfig
from platform_sync.models.order_model import ExternalOrderItem, ExternalOrderRecord, Order, OrderItem
from platform_sync.repositories.catalog_repository import CatalogRepository
from platform_sync.repositories.external_order_repository import ExternalOrderRepository
from platform_sync.repositories.sync_log_repository import SyncLogRepository
from platform_sync.schemas.order_schemas import NormalizedOrder
from platform_sync.schemas.sync_schemas import SyncResult
from platform_sync.services import payload_cipher, status_mapper
from platform_sync.services.integration_registry import IntegrationRegistry
from platform_sync.services.platforms import ADAPTER_CLASSES, PlatformAdapter
from platform_sync.utils.dates import utcnow

logger = logging.getLogger(__name__)

WRAPPER_KEYS = ("order", "data")


def _load(payload: Union[bytes, str, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise IngestError(f"Payload is not valid JSON: {e}")
    if not isinstance(payload, dict):
        raise IngestError("Payload must be a JSON object")
    return payload


def _assign(target: Any, overwrite: bool, **values: Any) -> None:
    """Copy values onto a row; unless overwriting, ``None`` leaves a column as it is."""
    for name, value in values.items():
        if overwrite or value is not None:
            setattr(target, name, value)


def unwrap(adapter_class, body: Dict[str, Any]) -> Tuple[Optional[str], Dict[str, Any]]:
    """
    Strip platform webhook wrappers down to the native order object.

    Returns:
        (event type or None, order payload)
    """
    event, body = adapter_class.unwrap_webhook(body)
    for key in WRAPPER_KEYS:
        inner = body.get(key)
        if isinstance(inner, dict) and "id" not in body:
            body = inner
            break
    return event, body


class OrderIngestor:
    """Idempotent ingestion of platform orders."""

    def __init__(self, db: Session, registry: Optional[IntegrationRegistry] = None):
        self.db = db
        self.registry = registry or IntegrationRegistry(db)
        self.records = ExternalOrderRepository(db)
        self.catalog = CatalogRepository(db)
        self.logs = SyncLogRepository(db)

    # ==================== Parsing ====================

    def _decrypt(self, adapter_class, body: Dict[str, Any], config: Optional[IntegrationConfig]) -> Dict[str, Any]:
        if not (adapter_class.requires_encryption and payload_cipher.is_envelope(body)):
            return body
        if config is None or not config.api_secret:
            raise IngestError("Encrypted payload received without a configured secret", adapter_class.platform)
        try:
            decoded = payload_cipher.decode_json(body, config.api_secret)
        except DecodeError as e:
            raise IngestError(f"Could not decrypt payload: {e.message}", adapter_class.platform)
        if not isinstance(decoded, dict):
            raise IngestError("Decrypted payload is not an object", adapter_class.platform)
        return decoded

    def parse(
        self,
        platform: str,
        payload: Union[bytes, str, Dict[str, Any]],
        restaurant_id: Optional[int] = None
    ) -> NormalizedOrder:
        """
        Decode, unwrap and parse a payload without touching the database rows.

        Raises:
            IngestError: Unknown platform, undecodable or malformed payload
        """
        adapter_class = ADAPTER_CLASSES.get(platform)
        if adapter_class is None:
            raise IngestError(f"Unknown platform: {platform}", platform)

        body = _load(payload)
        config = self.registry.config_for(restaurant_id, platform) if restaurant_id is not None else None
        body = self._decrypt(adapter_class, body, config)
        event, body = unwrap(adapter_class, body)

        try:
            order = adapter_class.parse_order(body)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise IngestError(f"Malformed order payload: {e}", platform)
        if not order.external_order_id:
            raise IngestError("Order payload has no id", platform)

        implied = adapter_class.event_status(event)
        if implied:
            order = order.model_copy(update={"external_status": implied})
        return order

    # ==================== Persistence ====================

    def _resolve_restaurant(self, order: NormalizedOrder, restaurant_id: Optional[int]) -> int:
        if restaurant_id is not None:
            return restaurant_id
        config = self.registry.config_for_store(order.platform, order.store_reference)
        if config is None:
            raise IngestError(
                f"No active integration for store reference {order.store_reference!r}", order.platform
            )
        return config.restaurant_id

    def _apply(self, order: NormalizedOrder, restaurant_id: int) -> ExternalOrderRecord:
        mapped = status_mapper.to_internal(order.platform, order.external_status)
        record = self.records.get(order.platform, order.external_order_id)
        is_new = record is None
        if is_new:
            record = ExternalOrderRecord(platform=order.platform, external_order_id=order.external_order_id)
            self.db.add(record)

        if mapped:
            record.status = mapped.value.value
            record.needs_review = False
            record.review_reason = None
        elif order.external_status is None and not is_new:
            logger.info(f"{order.platform} order {order.external_order_id} update carries no status")
        else:
            logger.warning(
                f"Unknown {order.platform} status {order.external_status!r} on order "
                f"{order.external_order_id}; flagged for review"
            )
            if is_new:
                record.status = OrderStatus.initial().value
            record.needs_review = True
            record.review_reason = f"Unknown platform status: {order.external_status}"

        # Partial payloads (e.g. cancellation events) leave what they do not carry untouched
        has_amounts = bool(order.subtotal or order.total_amount)
        has_items = bool(order.items)

        record.restaurant_id = restaurant_id
        record.raw_data = json.loads(json.dumps(order.raw, default=str))
        _assign(
            record, is_new,
            external_status=order.external_status,
            order_number=order.order_number,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            customer_email=order.customer_email,
            customer_address=order.customer_address,
            delivery_latitude=order.latitude,
            delivery_longitude=order.longitude,
            payment_method=order.payment_method,
            notes=order.notes,
            order_date=order.order_date,
        )
        if is_new or has_amounts:
            record.subtotal = order.subtotal
            record.delivery_fee = order.delivery_fee
            record.total_amount = order.total_amount
            record.platform_commission = order.platform_commission

        product_ids = [
            self.catalog.match_product(restaurant_id, item.external_product_id, item.product_name, order.platform)
            for item in order.items
        ]
        if is_new or has_items:
            record.items = [
                ExternalOrderItem(
                    external_product_id=item.external_product_id,
                    internal_product_id=product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                    options=item.options,
                    special_instructions=item.special_instructions,
                )
                for item, product_id in zip(order.items, product_ids)
            ]

        internal = None
        if record.internal_order_id is not None:
            internal = self.records.get_order(record.internal_order_id)
        internal_is_new = internal is None
        if internal_is_new:
            internal = Order(restaurant_id=restaurant_id, source_platform=order.platform, status=record.status)
            self.db.add(internal)
        elif mapped:
            internal.status = record.status

        _assign(
            internal, internal_is_new,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            customer_address=order.customer_address,
            customer_address_lat=order.latitude,
            customer_address_lng=order.longitude,
            payment_method=order.payment_method,
            notes=order.notes,
        )
        if internal_is_new or has_amounts:
            internal.subtotal = order.subtotal
            internal.delivery_fee = order.delivery_fee
            internal.total_amount = order.total_amount
        if internal_is_new or has_items:
            internal.items = [
                OrderItem(
                    product_id=product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                    special_instructions=item.special_instructions,
                )
                for item, product_id in zip(order.items, product_ids)
            ]

        self.db.flush()
        record.internal_order_id = internal.id
        self.db.commit()
        self.db.refresh(record)
        logger.info(
            f"{'Created' if is_new else 'Updated'} {order.platform} order {order.external_order_id} "
            f"-> internal order {internal.id} ({record.status})"
        )
        return record

    def ingest(
        self,
        platform: str,
        payload: Union[bytes, str, Dict[str, Any]],
        restaurant_id: Optional[int] = None
    ) -> int:
        """
        Upsert an inbound order.

        Args:
            platform: Platform id
            payload: Native payload; encrypted envelopes and webhook wrappers are accepted
            restaurant_id: Owning restaurant when known (webhook route); otherwise
                resolved from the payload's store reference

        Returns:
            Internal order id

        Raises:
            IngestError: The payload cannot be decoded, parsed or attributed
        """
        order = self.parse(platform, payload, restaurant_id)
        return self.store(order, restaurant_id).internal_order_id

    def store(self, order: NormalizedOrder, restaurant_id: Optional[int] = None) -> ExternalOrderRecord:
        """Upsert an already parsed order."""
        owner = self._resolve_restaurant(order, restaurant_id)
        try:
            return self._apply(order, owner)
        except IntegrityError:
            # A concurrent delivery created the record first; update it instead
            self.db.rollback()
            logger.info(f"Retrying {order.platform} order {order.external_order_id} as an update")
            return self._apply(order, owner)

    # ==================== Pull ====================

    def _default_since(self, restaurant_id: int, platform: str) -> datetime:
        last = self.logs.last_completed(restaurant_id, platform, [SyncType.ORDER_PULL])
        if last is not None and last.started_at is not None:
            return last.started_at
        return utcnow() - timedelta(hours=settings.order_pull_lookback_hours)

    def pull_orders(
        self,
        restaurant_id: int,
        platform: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> SyncResult:
        """
        Fetch recent orders from a pull-capable platform and ingest each one.

        One bad order is recorded and skipped; the rest are still ingested.
        """
        limit = limit or settings.order_pull_limit
        adapter: Optional[PlatformAdapter] = self.registry.adapter_for(restaurant_id, platform)
        log = self.logs.open(restaurant_id, platform, SyncType.ORDER_PULL)
        if adapter is None:
            message = f"No usable {platform} integration"
            self.logs.finalize(log, errors=[message])
            return SyncResult(platform=platform, errors=[message], log_id=log.id)

        since = since or self._default_since(restaurant_id, platform)
        counters = {"synced_items": 0, "failed_items": 0}
        errors = []
        payloads = []
        try:
            try:
                payloads = adapter.fetch_orders(since, limit)
            except PlatformSyncError as e:
                logger.warning(f"Order pull for restaurant {restaurant_id} on {platform} failed: {e}")
                errors.append(str(e))
                config = self.registry.config_for(restaurant_id, platform)
                if config is not None:
                    self.registry.mark_error(config, str(e))
                return SyncResult(platform=platform, errors=errors, log_id=log.id)

            for payload in payloads:
                try:
                    self.ingest(platform, payload, restaurant_id)
                except IngestError as e:
                    counters["failed_items"] += 1
                    errors.append(str(e))
                    logger.warning(f"Skipping pulled {platform} order: {e}")
                    continue
                counters["synced_items"] += 1
        except Exception as e:
            logger.error(f"Order pull for restaurant {restaurant_id} on {platform} aborted: {e}", exc_info=True)
            self.db.rollback()
            errors.append(f"Pull aborted: {e}")
            raise
        finally:
            adapter.close()
            self.logs.finalize(log, counters, errors)

        logger.info(
            f"Pulled {len(payloads)} {platform} order(s) for restaurant {restaurant_id}: "
            f"{counters['synced_items']} ingested, {counters['failed_items']} failed"
        )
        return SyncResult(
            platform=platform,
            synced=counters["synced_items"],
            failed=counters["failed_items"],
            errors=errors,
            log_id=log.id,
        )
