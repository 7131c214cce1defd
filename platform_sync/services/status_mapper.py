"""
Bidirectional translation between the internal order status taxonomy and
each platform's status vocabulary.

Outbound tables are many-to-one on purpose: a platform may not distinguish
between internal states. Every platform therefore also declares an explicit
inbound table that fixes the canonical internal status for each token.
Lookups never guess: a miss returns an unmapped ``MappingResult``.
"""
import logging
from typing import Dict, NamedTuple, Optional, Union

from platform_sync.constants.order_status import OrderStatus
from platform_sync.constants.sync import Platform

logger = logging.getLogger(__name__)

S = OrderStatus

OUTBOUND_TABLES: Dict[str, Dict[OrderStatus, str]] = {
    Platform.MIGROS_YEMEK: {
        S.PENDING: "CONFIRMED",
        S.CONFIRMED: "CONFIRMED",
        S.PREPARING: "PREPARING",
        S.READY_FOR_PICKUP: "READY",
        S.OUT_FOR_DELIVERY: "ON_THE_WAY",
        S.DELIVERED: "DELIVERED",
        S.CANCELLED: "CANCELLED",
    },
    Platform.YEMEKSEPETI: {
        S.PENDING: "pending",
        S.CONFIRMED: "confirmed",
        S.PREPARING: "preparing",
        S.READY_FOR_PICKUP: "ready",
        S.OUT_FOR_DELIVERY: "on_the_way",
        S.DELIVERED: "delivered",
        S.CANCELLED: "cancelled",
    },
    # Getir owns NEW and the courier drives PICKED_UP, so the restaurant
    # never pushes pending or out_for_delivery.
    Platform.GETIR: {
        S.CONFIRMED: "CONFIRMED",
        S.PREPARING: "CONFIRMED",
        S.READY_FOR_PICKUP: "READY",
        S.DELIVERED: "DELIVERED",
        S.CANCELLED: "CANCELLED",
    },
    Platform.TRENDYOL_GO: {
        S.CONFIRMED: "CONFIRMED",
        S.PREPARING: "PREPARING",
        S.READY_FOR_PICKUP: "READY",
        S.OUT_FOR_DELIVERY: "READY",
        S.DELIVERED: "DELIVERED",
        S.CANCELLED: "CANCELLED",
    },
}

INBOUND_TABLES: Dict[str, Dict[str, OrderStatus]] = {
    Platform.MIGROS_YEMEK: {
        "CONFIRMED": S.CONFIRMED,
        "PREPARING": S.PREPARING,
        "READY": S.READY_FOR_PICKUP,
        "ON_THE_WAY": S.OUT_FOR_DELIVERY,
        "DELIVERED": S.DELIVERED,
        "CANCELLED": S.CANCELLED,
    },
    Platform.YEMEKSEPETI: {
        "pending": S.PENDING,
        "confirmed": S.CONFIRMED,
        "preparing": S.PREPARING,
        "ready": S.READY_FOR_PICKUP,
        "on_the_way": S.OUT_FOR_DELIVERY,
        "delivered": S.DELIVERED,
        "cancelled": S.CANCELLED,
    },
    Platform.GETIR: {
        "NEW": S.PENDING,
        "CONFIRMED": S.CONFIRMED,
        "PREPARING": S.PREPARING,
        "READY": S.READY_FOR_PICKUP,
        "PICKED_UP": S.OUT_FOR_DELIVERY,
        "DELIVERED": S.DELIVERED,
        "CANCELLED": S.CANCELLED,
    },
    Platform.TRENDYOL_GO: {
        "NEW": S.PENDING,
        "CONFIRMED": S.CONFIRMED,
        "PREPARING": S.PREPARING,
        "READY": S.READY_FOR_PICKUP,
        "DELIVERED": S.DELIVERED,
        "CANCELLED": S.CANCELLED,
    },
}

# Platforms whose tokens are lower-case and matched case-insensitively.
CASE_INSENSITIVE_PLATFORMS = {Platform.YEMEKSEPETI}


class MappingResult(NamedTuple):
    """Tagged lookup result: ``mapped`` is False for Unmapped/Unknown."""
    mapped: bool
    value: Optional[Union[str, OrderStatus]] = None
    source: Optional[str] = None

    def __bool__(self) -> bool:
        return self.mapped


def _coerce_internal(status: Union[str, OrderStatus]) -> Optional[OrderStatus]:
    if isinstance(status, OrderStatus):
        return status
    try:
        return OrderStatus(status)
    except ValueError:
        return None


def to_external(platform: str, internal_status: Union[str, OrderStatus]) -> MappingResult:
    """Translate an internal status to the platform token it is pushed as."""
    table = OUTBOUND_TABLES.get(platform)
    status = _coerce_internal(internal_status)
    if table is None or status is None or status not in table:
        return MappingResult(False, None, str(getattr(internal_status, "value", internal_status)))
    return MappingResult(True, table[status], status.value)


def to_internal(platform: str, external_status: Optional[str]) -> MappingResult:
    """Translate a platform token to its canonical internal status."""
    table = INBOUND_TABLES.get(platform)
    if table is None or external_status is None:
        return MappingResult(False, None, external_status)
    token = str(external_status).strip()
    if platform in CASE_INSENSITIVE_PLATFORMS:
        token = token.lower()
    status = table.get(token)
    if status is None:
        logger.debug(f"Unknown {platform} status token: {external_status!r}")
        return MappingResult(False, None, external_status)
    return MappingResult(True, status, external_status)


def supported_platforms():
    return tuple(OUTBOUND_TABLES)
