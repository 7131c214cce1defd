"""
Shared fixtures: an in-memory database and builders for integrations,
catalog rows and orders.
"""
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import platform_sync.models  # noqa: F401
from platform_sync.constants.sync import Platform
from platform_sync.db.base import Base
from platform_sync.factories.adapter_factory import PlatformAdapterFactory
from platform_sync.models.catalog_models import Category, Product, ProductMapping
from platform_sync.models.integration_models import IntegrationConfig
from platform_sync.models.order_model import ExternalOrderRecord, Order
from platform_sync.services.integration_registry import IntegrationRegistry

from fakes import FakeSession

MIGROS_SECRET = "0123456789abcdef0123456789abcdef"
YEMEKSEPETI_WEBHOOK_SECRET = "ys-webhook-secret"

CREDENTIALS = {
    Platform.MIGROS_YEMEK: {
        "api_key": "migros-key",
        "api_secret": MIGROS_SECRET,
        "vendor_id": "MG-100",
    },
    Platform.YEMEKSEPETI: {
        "vendor_id": "YS-100",
        "restaurant_name": "Kebapçı Halil",
        "branch_code": "KDK",
        "integration_code": "POS-1",
        "webhook_secret": YEMEKSEPETI_WEBHOOK_SECRET,
    },
    Platform.GETIR: {
        "app_secret_key": "getir-app",
        "restaurant_secret_key": "getir-restaurant",
        "store_id": "GT-100",
    },
    Platform.TRENDYOL_GO: {
        "api_key": "tgo-key",
        "api_secret": "tgo-secret",
        "seller_id": "555",
        "store_id": "777",
    },
}


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_integration(db):
    def _make(platform, restaurant_id=1, is_active=True, **values):
        fields = dict(CREDENTIALS[platform])
        fields["base_url"] = f"https://{platform}.test"
        fields.update(values)
        config = IntegrationConfig(
            restaurant_id=restaurant_id,
            platform=platform,
            is_active=is_active,
            **fields
        )
        db.add(config)
        db.commit()
        db.refresh(config)
        return config
    return _make


@pytest.fixture
def make_registry(db):
    """Registry whose adapters talk to per-platform FakeSessions and never sleep."""
    def _make(sessions):
        def factory(config):
            session = sessions.setdefault(config.platform, FakeSession())
            return PlatformAdapterFactory.from_config(
                config, session=session, sleep=lambda seconds: None
            )
        return IntegrationRegistry(db, adapter_factory=factory)
    return _make


@pytest.fixture
def make_product(db):
    def _make(name, restaurant_id=1, category=None, price=Decimal("45.00"), **values):
        product = Product(
            restaurant_id=restaurant_id,
            category_id=category.id if category else None,
            name=name,
            base_price=price,
            **values
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def make_category(db):
    def _make(name, restaurant_id=1, sort_order=0, **values):
        category = Category(restaurant_id=restaurant_id, name=name, sort_order=sort_order, **values)
        db.add(category)
        db.commit()
        db.refresh(category)
        return category
    return _make


@pytest.fixture
def make_mapping(db):
    def _make(product, platform, external_product_id, **values):
        mapping = ProductMapping(
            restaurant_id=product.restaurant_id,
            platform=platform,
            internal_product_id=product.id,
            external_product_id=external_product_id,
            **values
        )
        db.add(mapping)
        db.commit()
        db.refresh(mapping)
        return mapping
    return _make


@pytest.fixture
def make_order(db):
    """Internal order plus one ExternalOrderRecord per ``{platform: (ext_id, ext_status)}``."""
    def _make(records, restaurant_id=1, status="confirmed"):
        order = Order(restaurant_id=restaurant_id, status=status)
        db.add(order)
        db.flush()
        for platform, (external_id, external_status) in records.items():
            db.add(ExternalOrderRecord(
                restaurant_id=restaurant_id,
                platform=platform,
                external_order_id=external_id,
                internal_order_id=order.id,
                status=status,
                external_status=external_status,
            ))
        db.commit()
        db.refresh(order)
        return order
    return _make
