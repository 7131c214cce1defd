"""
Base adapter for delivery platform integrations.

Every marketplace gets one ``PlatformAdapter`` subclass. Shared orchestration
code only talks to this interface and never branches on the platform id.

Adapters return values on success and raise from the error taxonomy in
``platform_sync.core.exceptions`` on failure:

- transport failures, timeouts and 5xx are retried with exponential backoff
- 4xx fail fast as a permanent ``RemoteError``
- undecodable bodies raise ``DecodeError`` and are never retried
"""
import hashlib
import hmac
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import requests

from platform_sync.constants.order_status import OrderStatus
from platform_sync.core.config import settings
from platform_sync.core.exceptions import (
    DecodeError,
    MappingError,
    PlatformConnectionError,
    RemoteError,
    UnsupportedOperationError,
)
from platform_sync.schemas.order_schemas import NormalizedOrder, NormalizedOrderItem
from platform_sync.services import payload_cipher, status_mapper
from platform_sync.utils.dates import parse_timestamp
from platform_sync.utils.money import to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformCredentials:
    """
    Snapshot of an IntegrationConfig row.

    Adapters run on worker threads during a fan-out, so they hold plain
    values instead of a session-bound ORM instance.
    """
    restaurant_id: int
    platform: str
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    app_secret_key: Optional[str] = None
    restaurant_secret_key: Optional[str] = None
    vendor_id: Optional[str] = None
    store_id: Optional[str] = None
    seller_id: Optional[str] = None
    restaurant_name: Optional[str] = None
    chain_code: Optional[str] = None
    branch_code: Optional[str] = None
    integration_code: Optional[str] = None
    base_url: Optional[str] = None
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None

    @classmethod
    def from_config(cls, config: Any) -> "PlatformCredentials":
        values = {f.name: getattr(config, f.name, None) for f in fields(cls)}
        return cls(**values)


@dataclass
class RateLimit:
    limit: Optional[int]
    remaining: int
    reset_at: float


class PlatformAdapter(ABC):
    """Abstract base class for delivery platform adapters."""

    platform: str = ""
    base_url_setting: str = ""
    required_credentials: Tuple[str, ...] = ()
    # IntegrationConfig column matched against NormalizedOrder.store_reference
    store_reference_field: str = "store_id"
    requires_encryption: bool = False
    supports_pull: bool = False
    user_agent: str = "Platform-Sync-Integration/1.0"
    signature_header: str = "x-webhook-signature"
    # Webhook event type -> external status token the event implies
    event_statuses: Dict[str, str] = {}

    def __init__(
        self,
        credentials: PlatformCredentials,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.credentials = credentials
        default_url = getattr(settings, self.base_url_setting, "") if self.base_url_setting else ""
        self.base_url = (credentials.base_url or default_url).rstrip("/")
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.platform_request_timeout
        self.max_attempts = max(1, max_attempts or settings.platform_max_attempts)
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None
            else settings.platform_retry_base_delay
        )
        self._sleep = sleep
        self._rate_limit: Optional[RateLimit] = None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} restaurant={self.credentials.restaurant_id}>"

    def close(self) -> None:
        """Release the connection pool; an injected session is left to its owner."""
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "PlatformAdapter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @classmethod
    def missing_credentials(cls, credentials: PlatformCredentials) -> List[str]:
        return [name for name in cls.required_credentials if not getattr(credentials, name, None)]

    # ==================== HTTP plumbing ====================

    @abstractmethod
    def auth_headers(self) -> Dict[str, str]:
        """Platform-specific authentication headers."""

    def build_headers(self, auth: bool = True) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if auth:
            headers.update(self.auth_headers())
        return headers

    def _encode_body(self, body: Any) -> Any:
        if body is None:
            return None
        if self.requires_encryption:
            return payload_cipher.encode(body, self._cipher_secret())
        return body

    def _cipher_secret(self) -> str:
        raise NotImplementedError(f"{self.platform} does not encrypt payloads")

    def _parse_response(self, response: requests.Response) -> Any:
        text = response.text
        if not text or not text.strip():
            return None
        try:
            body = response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON response: {e}", self.platform)
        if self.requires_encryption and payload_cipher.is_envelope(body):
            return payload_cipher.decode_json(body, self._cipher_secret())
        return body

    def _update_rate_limit(self, response: requests.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")
        if remaining is None or reset is None:
            return
        try:
            limit = response.headers.get("X-RateLimit-Limit")
            self._rate_limit = RateLimit(
                limit=int(limit) if limit is not None else None,
                remaining=int(remaining),
                reset_at=float(reset),
            )
        except ValueError:
            logger.debug(f"Unparseable rate limit headers from {self.platform}")

    def _respect_rate_limit(self) -> None:
        if not self._rate_limit or self._rate_limit.remaining > 0:
            return
        wait = self._rate_limit.reset_at - time.time()
        if wait > 0:
            wait = min(wait, self.timeout)
            logger.info(f"{self.platform} rate limit exhausted, waiting {wait:.1f}s")
            self._sleep(wait)
        self._rate_limit = None

    def request(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        auth: bool = True
    ) -> Any:
        """
        Issue one logical call, retrying transient failures.

        Args:
            method: HTTP method
            path: Endpoint path relative to the platform base URL
            json_body: Plain JSON body; encrypted here when the platform requires it
            params: Query string parameters
            auth: Send the platform authentication headers

        Returns:
            Parsed (and, where needed, decrypted) JSON response, or None for
            an empty body
        """
        url = f"{self.base_url}{path}"
        body = self._encode_body(json_body)
        last_error: Optional[RemoteError] = None

        for attempt in range(1, self.max_attempts + 1):
            self._respect_rate_limit()
            try:
                response = self.session.request(
                    method,
                    url,
                    json=body,
                    params=params,
                    headers=self.build_headers(auth),
                    timeout=self.timeout,
                )
            except requests.Timeout as e:
                last_error = PlatformConnectionError(f"Timeout calling {method} {path}: {e}", self.platform)
            except requests.RequestException as e:
                last_error = PlatformConnectionError(f"Transport error calling {method} {path}: {e}", self.platform)
            else:
                self._update_rate_limit(response)
                if response.status_code >= 500:
                    last_error = RemoteError(
                        f"{method} {path} failed: {response.status_code} - {response.text[:500]}",
                        self.platform,
                        status_code=response.status_code,
                        transient=True,
                    )
                elif response.status_code >= 400:
                    logger.error(
                        f"{self.platform} {method} {path} rejected: "
                        f"{response.status_code} - {response.text[:500]}"
                    )
                    raise RemoteError(
                        f"{method} {path} rejected: {response.status_code} - {response.text[:500]}",
                        self.platform,
                        status_code=response.status_code,
                        transient=False,
                    )
                else:
                    return self._parse_response(response)

            if attempt < self.max_attempts:
                delay = self.retry_base_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"{self.platform} {method} {path} attempt {attempt}/{self.max_attempts} "
                    f"failed ({last_error.message}); retrying in {delay:.1f}s"
                )
                self._sleep(delay)

        logger.error(f"{self.platform} {method} {path} gave up after {self.max_attempts} attempts")
        raise last_error

    # ==================== Status helpers ====================

    def map_status(self, internal_status: Any) -> str:
        result = status_mapper.to_external(self.platform, internal_status)
        if not result.mapped:
            raise MappingError(
                f"Status {result.source!r} has no {self.platform} equivalent",
                self.platform,
            )
        return result.value

    # ==================== Name matching ====================

    @staticmethod
    def find_by_name(items: Iterable[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
        wanted = (name or "").strip().casefold()
        for item in items or []:
            if isinstance(item, dict) and str(item.get("name", "")).strip().casefold() == wanted:
                return item
        return None

    def matched_id(self, match: Dict[str, Any], label: str, *keys: str) -> str:
        """Id of a menu entry returned by the platform; a missing id is a remote error."""
        for key in keys or ("id",):
            value = match.get(key)
            if value is not None and value != "":
                return str(value)
        raise RemoteError(f"{label} in platform menu has no id", self.platform)

    # ==================== Contract ====================

    @abstractmethod
    def test_connection(self) -> None:
        """Raise if the platform cannot be reached with the configured credentials."""

    def push_order_status(
        self,
        external_order_id: str,
        internal_status: OrderStatus,
        details: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Push a status change; mapping happens before any network call.

        Returns:
            The external status token that was accepted
        """
        token = self.map_status(internal_status)
        self._send_order_status(external_order_id, token, details or {})
        return token

    @abstractmethod
    def _send_order_status(self, external_order_id: str, token: str, details: Dict[str, Any]) -> None:
        """Deliver an already-mapped status token."""

    @abstractmethod
    def cancel_order(self, external_order_id: str, reason: str) -> str:
        """Cancel on the platform and return the external cancelled token."""

    @abstractmethod
    def push_category(self, category: Any, external_id: Optional[str] = None) -> str:
        """Create or update a category; returns the external category id."""

    @abstractmethod
    def push_product(
        self,
        product: Any,
        external_id: Optional[str] = None,
        include_price: bool = True,
        external_category_id: Optional[str] = None
    ) -> Tuple[str, Optional[str]]:
        """
        Create or update a product; returns (external id, external name).

        Raises:
            UnsupportedOperationError: The platform cannot update an already
                mapped product, so nothing was sent
        """

    @abstractmethod
    def set_product_availability(self, external_product_id: str, available: bool) -> None:
        """Toggle an item's availability on the platform."""

    def set_category_availability(self, external_category_id: str, available: bool) -> None:
        """Toggle a whole menu section on the platform."""
        raise UnsupportedOperationError(
            f"{self.platform} does not support category availability", self.platform
        )

    def fetch_orders(self, since: Optional[datetime], limit: int) -> List[Dict[str, Any]]:
        raise UnsupportedOperationError(
            f"{self.platform} delivers orders by webhook only", self.platform
        )

    @classmethod
    @abstractmethod
    def parse_order(cls, payload: Dict[str, Any]) -> NormalizedOrder:
        """Translate a native order payload; pure, no I/O."""

    @classmethod
    def unwrap_webhook(cls, body: Dict[str, Any]) -> Tuple[Optional[str], Dict[str, Any]]:
        """Split a webhook body into (event type, native order payload)."""
        return None, body

    @classmethod
    def event_status(cls, event: Optional[str]) -> Optional[str]:
        """External status token a webhook event stands for, whatever its payload says."""
        return cls.event_statuses.get(event) if event else None

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """
        Hex HMAC-SHA256 over the raw body with the configured webhook secret.

        Platforms that do not sign webhooks accept everything.
        """
        secret = self.credentials.webhook_secret
        if not secret:
            return True
        if not signature:
            return False
        expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature.strip().lower())


def parse_marketplace_order(platform: str, payload: Dict[str, Any]) -> NormalizedOrder:
    """
    Shared parser for the camelCase order schema used by Getir and Trendyol
    (``orderNumber``, ``deliveryAddress.coordinates``, ``finalAmount``...).
    """
    customer = payload.get("customer") or {}
    address = payload.get("deliveryAddress") or {}
    coordinates = address.get("coordinates") or {}
    address_text = ", ".join(
        part for part in (address.get("address"), address.get("district"), address.get("city")) if part
    )

    items = []
    for item in payload.get("items") or []:
        quantity = int(item.get("quantity") or 1)
        unit_price = to_decimal(item.get("unitPrice"))
        total_price = to_decimal(item.get("totalPrice"), None)
        options = item.get("modifiers") or item.get("selectedModifiers") or item.get("variants")
        product_id = item.get("productId")
        items.append(NormalizedOrderItem(
            external_product_id=str(product_id) if product_id is not None else None,
            product_name=item.get("productName") or "",
            quantity=quantity,
            unit_price=unit_price,
            total_price=total_price if total_price is not None else unit_price * quantity,
            options=options,
            special_instructions=item.get("note"),
        ))

    total = to_decimal(payload.get("totalAmount"))
    final = to_decimal(payload.get("finalAmount"), None)
    restaurant = payload.get("restaurant") or {}
    store_reference = payload.get("restaurantId") or payload.get("storeId") or restaurant.get("id")
    order_id = payload.get("id") or payload.get("packageId")
    payment = payload.get("paymentMethod")

    return NormalizedOrder(
        platform=platform,
        external_order_id=str(order_id) if order_id is not None else "",
        order_number=payload.get("orderNumber"),
        store_reference=str(store_reference) if store_reference is not None else None,
        external_status=payload.get("status"),
        customer_name=customer.get("name"),
        customer_phone=customer.get("phone"),
        customer_email=customer.get("email"),
        customer_address=address_text or None,
        latitude=to_decimal(coordinates.get("latitude"), None),
        longitude=to_decimal(coordinates.get("longitude"), None),
        subtotal=total,
        delivery_fee=to_decimal(payload.get("deliveryFee")),
        total_amount=final if final is not None else total,
        payment_method=payment.lower() if isinstance(payment, str) else None,
        notes=payload.get("customerNote"),
        order_date=parse_timestamp(payload.get("createdAt")),
        items=items,
        raw=payload,
    )
