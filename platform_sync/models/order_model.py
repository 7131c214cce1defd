from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from platform_sync.db.base import Base
from platform_sync.utils.dates import utcnow


class Order(Base):
    """Internal order, reduced to the fields the sync engine reads or writes."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    # pending, confirmed, preparing, ready_for_pickup, out_for_delivery, delivered, cancelled
    status = Column(String(30), nullable=False, default="pending")
    source_platform = Column(String(50), nullable=True)

    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_address = Column(Text, nullable=True)
    customer_address_lat = Column(Numeric(10, 7), nullable=True)
    customer_address_lng = Column(Numeric(10, 7), nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    special_instructions = Column(Text, nullable=True)

    order = relationship("Order", back_populates="items")


class ExternalOrderRecord(Base):
    __tablename__ = "external_orders"
    __table_args__ = (
        UniqueConstraint("platform", "external_order_id", name="uq_external_order_platform_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    platform = Column(String(50), nullable=False, index=True)
    external_order_id = Column(String(100), nullable=False)
    order_number = Column(String(100), nullable=True)
    internal_order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, index=True)

    # Always a member of the shared taxonomy
    status = Column(String(30), nullable=False, default="pending")
    # Platform-native token, free text
    external_status = Column(String(50), nullable=True)
    needs_review = Column(Boolean, nullable=False, default=False)
    review_reason = Column(String(255), nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    platform_commission = Column(Numeric(10, 2), nullable=False, default=0)

    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_address = Column(Text, nullable=True)
    delivery_latitude = Column(Numeric(10, 7), nullable=True)
    delivery_longitude = Column(Numeric(10, 7), nullable=True)
    payment_method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    order_date = Column(DateTime, nullable=True)

    raw_data = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    items = relationship(
        "ExternalOrderItem", back_populates="external_order", cascade="all, delete-orphan"
    )


class ExternalOrderItem(Base):
    __tablename__ = "external_order_items"

    id = Column(Integer, primary_key=True, index=True)
    external_order_id = Column(Integer, ForeignKey("external_orders.id"), nullable=False, index=True)
    external_product_id = Column(String(100), nullable=True)
    internal_product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    options = Column(JSON, nullable=True)
    special_instructions = Column(Text, nullable=True)

    external_order = relationship("ExternalOrderRecord", back_populates="items")
