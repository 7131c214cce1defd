"""
Getir Food adapter.

Authenticates with the app and restaurant secret keys, then sends a bearer
token that is reused for 55 minutes. The menu cannot be created through the
API: categories and products are matched by name against the platform menu,
and neither can be updated once matched.
"""
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from platform_sync.constants.sync import Platform
from platform_sync.core.exceptions import RemoteError, UnsupportedOperationError
from platform_sync.schemas.order_schemas import NormalizedOrder
from platform_sync.services.platforms.base import PlatformAdapter, parse_marketplace_order
from platform_sync.utils.dates import utcnow

logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 55 * 60

# External status token -> order action endpoint
STATUS_ACTIONS = {
    "CONFIRMED": "verify",
    "READY": "prepare",
    "DELIVERED": "deliver",
    "CANCELLED": "cancel",
}

PRODUCT_ACTIVE = 100
PRODUCT_INACTIVE = 200


class GetirFoodAdapter(PlatformAdapter):
    platform = Platform.GETIR
    base_url_setting = "getir_base_url"
    required_credentials = ("app_secret_key", "restaurant_secret_key")
    supports_pull = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._menu: Optional[Dict[str, List[Dict[str, Any]]]] = None

    # ==================== Auth ====================

    def login(self) -> str:
        result = self.request("POST", "/auth/login", {
            "appSecretKey": self.credentials.app_secret_key,
            "restaurantSecretKey": self.credentials.restaurant_secret_key,
        }, auth=False) or {}
        token = result.get("token") or result.get("accessToken")
        if not token:
            raise RemoteError("Login response did not contain a token", self.platform)
        self._token = token
        self._token_expires_at = time.monotonic() + TOKEN_TTL_SECONDS
        logger.info(f"Getir token refreshed for restaurant {self.credentials.restaurant_id}")
        return token

    def auth_headers(self) -> Dict[str, str]:
        if not self._token or time.monotonic() >= self._token_expires_at:
            self.login()
        return {"Authorization": f"Bearer {self._token}"}

    def test_connection(self) -> None:
        self.login()

    # ==================== Orders ====================

    def _send_order_status(self, external_order_id: str, token: str, details: Dict[str, Any]) -> None:
        action = STATUS_ACTIONS[token]
        body = None
        if action == "cancel" and details.get("reason"):
            body = {"cancelNote": details["reason"]}
        self.request("POST", f"/food-orders/{external_order_id}/{action}", body)

    def cancel_order(self, external_order_id: str, reason: str) -> str:
        body = {"cancelNote": reason} if reason else None
        self.request("POST", f"/food-orders/{external_order_id}/cancel", body)
        return self.map_status("cancelled")

    def fetch_orders(self, since: Optional[datetime], limit: int) -> List[Dict[str, Any]]:
        end = utcnow()
        start = since or (end - timedelta(hours=24))
        result = self.request("GET", "/food-orders", params={
            "page": 1,
            "limit": limit,
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
        }) or {}
        orders = result.get("orders", []) if isinstance(result, dict) else result
        return list(orders or [])[:limit]

    # ==================== Menu ====================

    def get_menu(self, refresh: bool = False) -> Dict[str, List[Dict[str, Any]]]:
        if self._menu is None or refresh:
            result = self.request("GET", "/restaurants/menu") or {}
            self._menu = {
                "categories": result.get("categories") or [],
                "products": result.get("products") or [],
            }
        return self._menu

    def push_category(self, category: Any, external_id: Optional[str] = None) -> str:
        if external_id:
            raise UnsupportedOperationError("Getir Food does not accept category updates", self.platform)
        match = self.find_by_name(self.get_menu()["categories"], category.name)
        if not match:
            raise RemoteError(f"Category '{category.name}' not found in platform menu", self.platform)
        return self.matched_id(match, f"Category '{category.name}'")

    def push_product(
        self,
        product: Any,
        external_id: Optional[str] = None,
        include_price: bool = True,
        external_category_id: Optional[str] = None
    ) -> Tuple[str, Optional[str]]:
        if external_id:
            raise UnsupportedOperationError(
                "Getir Food does not accept product or price updates", self.platform
            )
        match = self.find_by_name(self.get_menu()["products"], product.name)
        if not match:
            raise RemoteError(f"Product '{product.name}' not found in platform menu", self.platform)
        return self.matched_id(match, f"Product '{product.name}'"), match.get("name")

    def set_product_availability(self, external_product_id: str, available: bool) -> None:
        status = PRODUCT_ACTIVE if available else PRODUCT_INACTIVE
        self.request("PUT", f"/products/{external_product_id}/status", {"status": status})

    # ==================== Inbound ====================

    @classmethod
    def parse_order(cls, payload: Dict[str, Any]) -> NormalizedOrder:
        return parse_marketplace_order(cls.platform, payload)
