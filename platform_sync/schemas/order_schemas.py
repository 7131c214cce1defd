"""
Platform-agnostic order shape produced by each adapter's parser
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class NormalizedOrderItem(BaseModel):
    external_product_id: Optional[str] = None
    product_name: str
    quantity: int = 1
    unit_price: Decimal = Decimal("0")
    total_price: Decimal = Decimal("0")
    options: Optional[List[Dict[str, Any]]] = None
    special_instructions: Optional[str] = None


class NormalizedOrder(BaseModel):
    """An inbound order translated out of a platform's native schema"""
    platform: str
    external_order_id: str
    order_number: Optional[str] = None
    store_reference: Optional[str] = Field(
        None, description="Vendor/store/seller id used to find the restaurant"
    )
    external_status: Optional[str] = None

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None

    subtotal: Decimal = Decimal("0")
    delivery_fee: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    platform_commission: Decimal = Decimal("0")
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    order_date: Optional[datetime] = None

    items: List[NormalizedOrderItem] = Field(default_factory=list)
    raw: Dict[str, Any] = Field(default_factory=dict)
