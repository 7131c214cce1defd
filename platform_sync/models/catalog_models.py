from sqlalchemy import (
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


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    products = relationship("Product", back_populates="category")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    image_url = Column(String(500), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    preparation_time = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    category = relationship("Category", back_populates="products")


class ProductMapping(Base):
    __tablename__ = "platform_product_mappings"
    __table_args__ = (
        UniqueConstraint(
            "restaurant_id", "platform", "internal_product_id",
            name="uq_product_mapping_restaurant_platform_product"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    platform = Column(String(50), nullable=False, index=True)
    internal_product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    external_product_id = Column(String(100), nullable=False)
    external_product_name = Column(String(255), nullable=True)
    price_sync_enabled = Column(Boolean, nullable=False, default=True)
    availability_sync_enabled = Column(Boolean, nullable=False, default=True)
    last_synced_at = Column(DateTime, nullable=True)
    # synced, pending, error
    sync_status = Column(String(20), nullable=False, default="pending")
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    product = relationship("Product")


class CategoryMapping(Base):
    __tablename__ = "platform_category_mappings"
    __table_args__ = (
        UniqueConstraint(
            "restaurant_id", "platform", "internal_category_id",
            name="uq_category_mapping_restaurant_platform_category"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    platform = Column(String(50), nullable=False, index=True)
    internal_category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    external_category_id = Column(String(100), nullable=False)
    external_category_name = Column(String(255), nullable=True)
    last_synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
