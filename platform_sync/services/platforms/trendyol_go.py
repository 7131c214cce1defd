"""
Trendyol GO (Trendyol Yemek) adapter.

Basic auth with ``api_key:api_secret``; every path is scoped by the seller id,
and menu paths additionally by the store id. Orders are "packages"; menu
categories are "sections", matched by name like products.
"""
import base64
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from platform_sync.constants.sync import Platform
from platform_sync.core.exceptions import RemoteError, UnsupportedOperationError
from platform_sync.schemas.order_schemas import NormalizedOrder
from platform_sync.services.platforms.base import PlatformAdapter, parse_marketplace_order
from platform_sync.utils.dates import to_epoch_millis, utcnow
from platform_sync.utils.money import to_float

logger = logging.getLogger(__name__)


class TrendyolGoAdapter(PlatformAdapter):
    platform = Platform.TRENDYOL_GO
    base_url_setting = "trendyol_go_base_url"
    required_credentials = ("api_key", "api_secret", "seller_id", "store_id")
    supports_pull = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._menu: Optional[Dict[str, List[Dict[str, Any]]]] = None

    @property
    def user_agent(self) -> str:
        return f"{self.credentials.seller_id} - SelfIntegration"

    def auth_headers(self) -> Dict[str, str]:
        raw = f"{self.credentials.api_key}:{self.credentials.api_secret}".encode("utf-8")
        return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}

    @property
    def _orders_path(self) -> str:
        return f"/integrator/order/meal/suppliers/{self.credentials.seller_id}/packages"

    @property
    def _store_path(self) -> str:
        c = self.credentials
        return f"/integrator/product/meal/suppliers/{c.seller_id}/stores/{c.store_id}"

    @property
    def _products_path(self) -> str:
        return f"{self._store_path}/products"

    def test_connection(self) -> None:
        self.get_products(refresh=True)

    # ==================== Orders ====================

    def _send_order_status(self, external_order_id: str, token: str, details: Dict[str, Any]) -> None:
        body = {"status": token}
        if details.get("estimated_delivery_time"):
            body["estimatedDeliveryTime"] = details["estimated_delivery_time"]
        if details.get("reason"):
            body["rejectReason"] = details["reason"]
        if details.get("notes"):
            body["notes"] = details["notes"]
        self.request("PUT", f"{self._orders_path}/{external_order_id}/status", body)

    def cancel_order(self, external_order_id: str, reason: str) -> str:
        token = self.map_status("cancelled")
        self.request("PUT", f"{self._orders_path}/{external_order_id}/status", {
            "status": token,
            "rejectReason": reason,
        })
        return token

    def fetch_orders(self, since: Optional[datetime], limit: int) -> List[Dict[str, Any]]:
        start = since or (utcnow() - timedelta(hours=24))
        result = self.request("GET", self._orders_path, params={
            "size": limit,
            "packageModificationStartDate": to_epoch_millis(start),
        })
        if isinstance(result, dict):
            result = result.get("content") or result.get("orders") or []
        return list(result or [])[:limit]

    # ==================== Menu ====================

    def get_menu(self, refresh: bool = False) -> Dict[str, List[Dict[str, Any]]]:
        """Products and sections (categories) of the store, cached per adapter."""
        if self._menu is None or refresh:
            result = self.request("GET", self._products_path)
            if isinstance(result, dict):
                products = result.get("products") or result.get("content") or []
                sections = result.get("sections") or []
            else:
                products, sections = result or [], []
            self._menu = {"products": products, "sections": sections}
        return self._menu

    def get_products(self, refresh: bool = False) -> List[Dict[str, Any]]:
        return self.get_menu(refresh)["products"]

    def push_category(self, category: Any, external_id: Optional[str] = None) -> str:
        if external_id:
            raise UnsupportedOperationError("Menu sections are managed on the platform", self.platform)
        match = self.find_by_name(self.get_menu()["sections"], category.name)
        if not match:
            raise RemoteError(f"Section '{category.name}' not found in platform menu", self.platform)
        return self.matched_id(match, f"Section '{category.name}'")

    def push_product(
        self,
        product: Any,
        external_id: Optional[str] = None,
        include_price: bool = True,
        external_category_id: Optional[str] = None
    ) -> Tuple[str, Optional[str]]:
        if external_id:
            # The platform name is kept as matched; only details and price are ours
            body = {"description": product.description or ""}
            if include_price:
                body["price"] = to_float(product.base_price)
            self.request("PUT", f"{self._products_path}/{external_id}", body)
            return external_id, None
        match = self.find_by_name(self.get_products(), product.name)
        if not match:
            raise RemoteError(f"Product '{product.name}' not found in platform menu", self.platform)
        return self.matched_id(match, f"Product '{product.name}'"), match.get("name")

    def set_product_availability(self, external_product_id: str, available: bool) -> None:
        self.request(
            "PUT",
            f"{self._products_path}/{external_product_id}/status",
            {"status": "ACTIVE" if available else "PASSIVE"},
        )

    def set_category_availability(self, external_category_id: str, available: bool) -> None:
        self.request(
            "PUT",
            f"{self._store_path}/sections/{external_category_id}/status",
            {"status": "ACTIVE" if available else "PASSIVE"},
        )

    # ==================== Inbound ====================

    @classmethod
    def parse_order(cls, payload: Dict[str, Any]) -> NormalizedOrder:
        return parse_marketplace_order(cls.platform, payload)
