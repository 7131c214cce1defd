"""Shared order status taxonomy."""

from enum import Enum


class OrderStatus(str, Enum):
    """
    Internal order lifecycle, in order.

    This is the only status vocabulary business logic may reason about;
    platform-native tokens are translated by the status mapper.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def initial(cls) -> "OrderStatus":
        return cls.PENDING
