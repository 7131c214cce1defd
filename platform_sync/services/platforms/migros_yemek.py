"""
Migros Yemek adapter.

Every request and response body travels inside an encrypted envelope; the
``api_secret`` of the integration is the cipher key. All endpoints are POST.
Orders arrive by webhook only.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from platform_sync.constants.sync import Platform
from platform_sync.core.exceptions import RemoteError, UnsupportedOperationError
from platform_sync.schemas.order_schemas import NormalizedOrder, NormalizedOrderItem
from platform_sync.services.platforms.base import PlatformAdapter
from platform_sync.utils.dates import parse_timestamp
from platform_sync.utils.money import from_minor_units, to_decimal

logger = logging.getLogger(__name__)


class MigrosYemekAdapter(PlatformAdapter):
    platform = Platform.MIGROS_YEMEK
    base_url_setting = "migros_yemek_base_url"
    required_credentials = ("api_key", "api_secret")
    store_reference_field = "vendor_id"
    requires_encryption = True
    user_agent = "Gourmet-POS-Integration/1.0"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._menu_items: Optional[List[Dict[str, Any]]] = None

    def auth_headers(self) -> Dict[str, str]:
        return {"ApiKey": self.credentials.api_key or ""}

    def _cipher_secret(self) -> str:
        return self.credentials.api_secret or ""

    def test_connection(self) -> None:
        self.request("POST", "/Test/Connection", {"test": True})

    # ==================== Orders ====================

    def _send_order_status(self, external_order_id: str, token: str, details: Dict[str, Any]) -> None:
        body = {"orderId": external_order_id, "status": token}
        if details.get("estimated_delivery_time"):
            body["estimatedDeliveryTime"] = details["estimated_delivery_time"]
        if details.get("reason"):
            body["cancelReason"] = details["reason"]
        self.request("POST", "/Order/UpdateStatus", body)

    def cancel_order(self, external_order_id: str, reason: str) -> str:
        token = self.map_status("cancelled")
        self.request("POST", "/Order/UpdateStatus", {
            "orderId": external_order_id,
            "status": token,
            "cancelReason": reason,
        })
        return token

    # ==================== Menu ====================

    def get_menu_items(self, refresh: bool = False) -> List[Dict[str, Any]]:
        if self._menu_items is None or refresh:
            result = self.request("POST", "/Menu/GetItems", {})
            if isinstance(result, dict):
                result = result.get("items") or result.get("data") or []
            self._menu_items = result or []
        return self._menu_items

    def push_category(self, category: Any, external_id: Optional[str] = None) -> str:
        raise UnsupportedOperationError("Menu categories are managed on the platform", self.platform)

    def push_product(
        self,
        product: Any,
        external_id: Optional[str] = None,
        include_price: bool = True,
        external_category_id: Optional[str] = None
    ) -> Tuple[str, Optional[str]]:
        if external_id:
            raise UnsupportedOperationError(
                "Migros Yemek does not accept product or price updates", self.platform
            )
        match = self.find_by_name(self.get_menu_items(), product.name)
        if not match:
            raise RemoteError(f"Product '{product.name}' not found in platform menu", self.platform)
        return self.matched_id(match, f"Product '{product.name}'", "id", "productId"), match.get("name")

    def set_product_availability(self, external_product_id: str, available: bool) -> None:
        self.request("POST", "/Menu/UpdateAvailability", {
            "productId": external_product_id,
            "isAvailable": available,
        })

    # ==================== Inbound ====================

    @classmethod
    def parse_order(cls, payload: Dict[str, Any]) -> NormalizedOrder:
        customer = payload.get("customer") or {}
        address = customer.get("deliveryAddress") or {}
        geo = address.get("geoLocation") or {}
        prices = payload.get("prices") or {}
        total = from_minor_units((prices.get("total") or {}).get("amountAsPenny"))
        discounted = (prices.get("discounted") or {}).get("amountAsPenny")
        payable = from_minor_units(discounted) if discounted is not None else total
        payment_type = (payload.get("payment") or {}).get("type") or {}

        items = []
        for item in payload.get("items") or []:
            quantity = int(item.get("amount") or 1)
            unit_price = from_minor_units(item.get("price"))
            items.append(NormalizedOrderItem(
                external_product_id=str(item.get("productId")) if item.get("productId") is not None else None,
                product_name=item.get("name") or "",
                quantity=quantity,
                unit_price=unit_price,
                total_price=unit_price * quantity,
                options=item.get("options"),
                special_instructions=item.get("note"),
            ))

        store = payload.get("store") or {}
        order_id = payload.get("id")
        return NormalizedOrder(
            platform=cls.platform,
            external_order_id=str(order_id) if order_id is not None else "",
            order_number=str(order_id) if order_id is not None else None,
            store_reference=str(store["id"]) if store.get("id") is not None else None,
            external_status=payload.get("status"),
            customer_name=customer.get("fullName"),
            customer_phone=customer.get("phoneNumber"),
            customer_address=address.get("detail"),
            latitude=to_decimal(geo.get("latitude"), None),
            longitude=to_decimal(geo.get("longitude"), None),
            subtotal=total,
            total_amount=payable,
            payment_method="online" if payment_type.get("isOnlinePayment") else "cash",
            notes=(payload.get("extendedProperties") or {}).get("orderNote"),
            order_date=parse_timestamp((payload.get("log") or {}).get("createdAsMs")),
            items=items,
            raw=payload,
        )
