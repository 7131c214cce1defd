"""
Yemeksepeti adapter.

Plain JSON over REST, vendor-identified by headers. Webhooks are signed with
``x-yemeksepeti-signature`` and wrap the order as
``{"event", "data", "timestamp", "restaurant_code", "branch_code"}``.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from platform_sync.constants.sync import Platform
from platform_sync.core.exceptions import RemoteError
from platform_sync.schemas.order_schemas import NormalizedOrder, NormalizedOrderItem
from platform_sync.services.platforms.base import PlatformAdapter
from platform_sync.utils.dates import parse_timestamp, utcnow
from platform_sync.utils.money import to_decimal, to_float

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-yemeksepeti-signature"
DEFAULT_PREPARATION_TIME = 15


class YemeksepetiAdapter(PlatformAdapter):
    platform = Platform.YEMEKSEPETI
    base_url_setting = "yemeksepeti_base_url"
    required_credentials = ("vendor_id",)
    store_reference_field = "vendor_id"
    supports_pull = True
    signature_header = SIGNATURE_HEADER
    # Cancellation events carry only the order id and a reason
    event_statuses = {"order.cancelled": "cancelled"}

    def auth_headers(self) -> Dict[str, str]:
        c = self.credentials
        return {
            "X-Vendor-ID": c.vendor_id or "",
            "X-Restaurant-Name": c.restaurant_name or "",
            "X-Branch-Code": c.branch_code or "",
            "X-Integration-Code": c.integration_code or "",
        }

    @staticmethod
    def _data(result: Any) -> Any:
        if isinstance(result, dict) and "data" in result:
            if result.get("success") is False:
                raise RemoteError(result.get("error") or "Request failed", Platform.YEMEKSEPETI)
            return result["data"]
        return result

    def test_connection(self) -> None:
        self._data(self.request("GET", "/test"))

    # ==================== Orders ====================

    def _send_order_status(self, external_order_id: str, token: str, details: Dict[str, Any]) -> None:
        self._data(self.request("PUT", f"/orders/{external_order_id}/status", {
            "status": token,
            "notes": details.get("notes"),
        }))

    def cancel_order(self, external_order_id: str, reason: str) -> str:
        self._data(self.request("POST", f"/orders/{external_order_id}/reject", {"reason": reason}))
        return self.map_status("cancelled")

    def fetch_orders(self, since: Optional[datetime], limit: int) -> List[Dict[str, Any]]:
        date_to = utcnow()
        date_from = since or (date_to - timedelta(hours=24))
        result = self._data(self.request("GET", "/orders", params={
            "date_from": date_from.isoformat(),
            "date_to": date_to.isoformat(),
            "limit": limit,
        }))
        return list(result or [])[:limit]

    # ==================== Menu ====================

    def push_category(self, category: Any, external_id: Optional[str] = None) -> str:
        body = {
            "name": category.name,
            "description": category.description or "",
            "sort_order": category.sort_order or 0,
            "is_active": bool(category.is_active),
        }
        if external_id:
            self._data(self.request("PUT", f"/menu/categories/{external_id}", body))
            return external_id
        created = self._data(self.request("POST", "/menu/categories", body)) or {}
        if not created.get("id"):
            raise RemoteError(f"Category '{category.name}' created without an id", self.platform)
        return str(created["id"])

    def push_product(
        self,
        product: Any,
        external_id: Optional[str] = None,
        include_price: bool = True,
        external_category_id: Optional[str] = None
    ) -> Tuple[str, Optional[str]]:
        body = {
            "name": product.name,
            "description": product.description or "",
            "category_id": external_category_id or product.category_id,
            "image_url": product.image_url,
            "is_available": bool(product.is_available),
            "preparation_time": product.preparation_time or DEFAULT_PREPARATION_TIME,
        }
        if include_price:
            body["price"] = to_float(product.base_price)
        if external_id:
            self._data(self.request("PUT", f"/menu/products/{external_id}", body))
            return external_id, product.name
        created = self._data(self.request("POST", "/menu/products", body)) or {}
        if not created.get("id"):
            raise RemoteError(f"Product '{product.name}' created without an id", self.platform)
        return str(created["id"]), created.get("name") or product.name

    def set_product_availability(self, external_product_id: str, available: bool) -> None:
        self._data(self.request(
            "PUT",
            f"/menu/products/{external_product_id}/availability",
            {"is_available": available},
        ))

    # ==================== Inbound ====================

    @classmethod
    def unwrap_webhook(cls, body: Dict[str, Any]) -> Tuple[Optional[str], Dict[str, Any]]:
        if "event" in body and isinstance(body.get("data"), dict):
            data = dict(body["data"])
            if body.get("restaurant_code") and "restaurant_code" not in data:
                data["restaurant_code"] = body["restaurant_code"]
            return body["event"], data
        return None, body

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        # Yemeksepeti always signs, so an unsigned request is never genuine
        if not signature:
            return False
        return super().verify_webhook_signature(body, signature)

    @classmethod
    def parse_order(cls, payload: Dict[str, Any]) -> NormalizedOrder:
        customer = payload.get("customer") or {}
        address = payload.get("delivery_address") or {}

        items = []
        for item in payload.get("items") or []:
            quantity = int(item.get("quantity") or 1)
            unit_price = to_decimal(item.get("unit_price"))
            total_price = to_decimal(item.get("total_price"), None)
            items.append(NormalizedOrderItem(
                external_product_id=str(item["product_id"]) if item.get("product_id") is not None else None,
                product_name=item.get("product_name") or "",
                quantity=quantity,
                unit_price=unit_price,
                total_price=total_price if total_price is not None else unit_price * quantity,
                options=item.get("options"),
                special_instructions=item.get("special_instructions"),
            ))

        order_id = payload.get("id")
        return NormalizedOrder(
            platform=cls.platform,
            external_order_id=str(order_id) if order_id is not None else "",
            order_number=payload.get("order_number"),
            store_reference=payload.get("restaurant_code"),
            external_status=payload.get("status"),
            customer_name=customer.get("name"),
            customer_phone=customer.get("phone"),
            customer_email=customer.get("email"),
            customer_address=address.get("address"),
            latitude=to_decimal(address.get("latitude"), None),
            longitude=to_decimal(address.get("longitude"), None),
            subtotal=to_decimal(payload.get("subtotal")),
            delivery_fee=to_decimal(payload.get("delivery_fee")),
            total_amount=to_decimal(payload.get("total_amount")),
            platform_commission=to_decimal(payload.get("commission")),
            payment_method=payload.get("payment_method"),
            notes=payload.get("notes"),
            order_date=parse_timestamp(payload.get("order_date")),
            items=items,
            raw=payload,
        )
