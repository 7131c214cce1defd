from datetime import timedelta
from decimal import Decimal

from platform_sync.constants.sync import (
    IntegrationSyncStatus,
    MappingSyncStatus,
    Platform,
    SyncRunStatus,
)
from platform_sync.models.catalog_models import CategoryMapping, ProductMapping
from platform_sync.models.integration_models import SyncAttemptLog
from platform_sync.schemas.sync_schemas import SyncOptions
from platform_sync.services.catalog_sync import CatalogSyncService
from platform_sync.services.platforms.base import PlatformAdapter
from platform_sync.utils.dates import utcnow

from fakes import FakeResponse, FakeSession


def ys_ok(data):
    return FakeResponse(200, {"success": True, "data": data})


def test_menu_sync_creates_mappings(db, make_integration, make_registry, make_category, make_product):
    """Test: A first run pushes categories then products and records their ids"""
    make_integration(Platform.YEMEKSEPETI)
    kebabs = make_category("Kebaplar")
    make_product("Adana Kebap", category=kebabs)
    make_product("Urfa Kebap", category=kebabs)
    session = FakeSession({
        "POST /menu/categories": ys_ok({"id": "YC-1"}),
        "POST /menu/products": [ys_ok({"id": "YP-1"}), ys_ok({"id": "YP-2"})],
    })
    service = CatalogSyncService(db, make_registry({Platform.YEMEKSEPETI: session}))

    result = service.sync_menu(1, Platform.YEMEKSEPETI, SyncOptions(sync_type="full"))

    assert result.success
    assert result.synced == 3
    assert db.query(CategoryMapping).one().external_category_id == "YC-1"
    mappings = db.query(ProductMapping).order_by(ProductMapping.internal_product_id).all()
    assert [m.external_product_id for m in mappings] == ["YP-1", "YP-2"]
    assert all(m.sync_status == MappingSyncStatus.SYNCED for m in mappings)
    # Products are filed under the platform's category id
    assert session.calls_to("POST /menu/products")[0].json["category_id"] == "YC-1"

    log = db.get(SyncAttemptLog, result.log_id)
    assert log.status == SyncRunStatus.COMPLETED
    assert log.synced_categories == 1
    assert log.synced_products == 2


def test_repeated_sync_does_not_duplicate_mappings(db, make_integration, make_registry, make_category, make_product):
    make_integration(Platform.YEMEKSEPETI)
    category = make_category("Tatlılar")
    make_product("Künefe", category=category)
    session = FakeSession({
        "POST /menu/categories": ys_ok({"id": "YC-7"}),
        "POST /menu/products": ys_ok({"id": "YP-7"}),
        "PUT /menu/categories/YC-7": ys_ok({}),
        "PUT /menu/products/YP-7": ys_ok({}),
    })
    service = CatalogSyncService(db, make_registry({Platform.YEMEKSEPETI: session}))

    service.sync_menu(1, Platform.YEMEKSEPETI, SyncOptions(sync_type="full"))
    second = service.sync_menu(1, Platform.YEMEKSEPETI, SyncOptions(sync_type="full"))

    assert second.success
    assert db.query(ProductMapping).count() == 1
    assert db.query(CategoryMapping).count() == 1
    # Second run updates in place
    assert len(session.calls_to("POST /menu/products")) == 1
    assert len(session.calls_to("PUT /menu/products/YP-7")) == 1


def test_incremental_sync_skips_unchanged_products(db, make_integration, make_registry, make_product):
    make_integration(Platform.YEMEKSEPETI)
    make_product("Ayran")
    session = FakeSession({"POST /menu/products": ys_ok({"id": "YP-1"})})
    service = CatalogSyncService(db, make_registry({Platform.YEMEKSEPETI: session}))

    service.sync_menu(1, Platform.YEMEKSEPETI)
    result = service.sync_menu(1, Platform.YEMEKSEPETI)

    assert result.success
    assert result.synced == 0
    assert len(session.calls) == 1


def test_one_failing_product_does_not_stop_the_rest(db, make_integration, make_registry, make_product):
    config = make_integration(Platform.YEMEKSEPETI)
    make_product("Lahmacun")
    make_product("Pide")
    session = FakeSession({
        "POST /menu/products": [FakeResponse(422, text="invalid image"), ys_ok({"id": "YP-2"})],
    })
    service = CatalogSyncService(db, make_registry({Platform.YEMEKSEPETI: session}))

    result = service.sync_menu(1, Platform.YEMEKSEPETI)

    assert result.synced == 1
    assert result.failed == 1
    assert "Lahmacun" in result.errors[0]
    assert db.query(ProductMapping).one().external_product_id == "YP-2"
    assert db.get(SyncAttemptLog, result.log_id).status == SyncRunStatus.PARTIAL
    db.refresh(config)
    assert config.sync_status == IntegrationSyncStatus.ERROR
    assert config.last_error


def test_name_matching_platform_matches_sections_and_products(
    db, make_integration, make_registry, make_category, make_product
):
    """Test: Trendyol GO sections and products are matched by name, nothing is created"""
    make_integration(Platform.TRENDYOL_GO)
    category = make_category("İçecekler")
    make_product("Ayran", category=category)
    session = FakeSession({
        "GET /integrator/product/meal/suppliers/555/stores/777/products": FakeResponse(200, {
            "products": [{"id": "T-10", "name": "AYRAN"}],
            "sections": [{"id": "S-1", "name": "İÇECEKLER"}],
        }),
    })
    service = CatalogSyncService(db, make_registry({Platform.TRENDYOL_GO: session}))

    result = service.sync_menu(1, Platform.TRENDYOL_GO, SyncOptions(sync_type="full"))

    assert result.success
    assert db.query(CategoryMapping).one().external_category_id == "S-1"
    mapping = db.query(ProductMapping).one()
    assert mapping.external_product_id == "T-10"
    assert mapping.external_product_name == "AYRAN"
    assert session.paths == ["GET /integrator/product/meal/suppliers/555/stores/777/products"]


def test_menu_entry_without_id_fails_only_that_product(db, make_integration, make_registry, make_product):
    """Test: A malformed platform menu entry is one failed item, the rest still map"""
    make_integration(Platform.GETIR)
    make_product("Alpha")
    make_product("Beta")
    session = FakeSession({
        "POST /auth/login": FakeResponse(200, {"token": "tok"}),
        "GET /restaurants/menu": FakeResponse(200, {
            "products": [{"name": "Alpha"}, {"name": "Beta", "id": "G-2"}],
        }),
    })
    service = CatalogSyncService(db, make_registry({Platform.GETIR: session}))

    result = service.sync_menu(1, Platform.GETIR, SyncOptions(sync_type="full"))

    assert result.synced == 1
    assert result.failed == 1
    assert "Alpha" in result.errors[0]
    mapping = db.query(ProductMapping).one()
    assert mapping.external_product_id == "G-2"
    assert db.get(SyncAttemptLog, result.log_id).status == SyncRunStatus.PARTIAL


def test_unexpected_error_is_counted_as_a_failed_product(db, make_integration, make_registry, make_product):
    make_integration(Platform.YEMEKSEPETI)
    make_product("Lahmacun")
    make_product("Pide")
    session = FakeSession({
        "POST /menu/products": [KeyError("data"), ys_ok({"id": "YP-2"})],
    })
    service = CatalogSyncService(db, make_registry({Platform.YEMEKSEPETI: session}))

    result = service.sync_menu(1, Platform.YEMEKSEPETI)

    assert result.synced == 1
    assert result.failed == 1
    assert "Lahmacun" in result.errors[0]
    log = db.get(SyncAttemptLog, result.log_id)
    assert log.status == SyncRunStatus.PARTIAL
    assert log.failed_products == 1


def test_price_change_on_platform_without_updates_is_skipped(
    db, make_integration, make_registry, make_product, make_mapping
):
    """Test: A mapped Getir product with a new price is reported as skipped, not synced"""
    make_integration(Platform.GETIR)
    product = make_product("Künefe", price=Decimal("120.00"))
    mapping = make_mapping(product, Platform.GETIR, "G-5", last_synced_at=utcnow() - timedelta(hours=1))
    product.base_price = Decimal("135.00")
    db.commit()
    session = FakeSession({"POST /auth/login": FakeResponse(200, {"token": "tok"})})
    service = CatalogSyncService(db, make_registry({Platform.GETIR: session}))

    result = service.sync_menu(1, Platform.GETIR)

    assert result.synced == 0
    assert result.failed == 0
    assert result.skipped == 1
    assert session.calls == []
    db.refresh(mapping)
    assert mapping.sync_status == MappingSyncStatus.PENDING
    assert "does not accept" in mapping.error_message
    log = db.get(SyncAttemptLog, result.log_id)
    assert log.skipped_items == 1
    assert log.synced_products == 0


def test_price_change_is_pushed_where_the_platform_accepts_it(
    db, make_integration, make_registry, make_product, make_mapping
):
    make_integration(Platform.TRENDYOL_GO)
    product = make_product("Ayran", price=Decimal("20.00"))
    make_mapping(product, Platform.TRENDYOL_GO, "T-10", last_synced_at=utcnow() - timedelta(hours=1))
    product.base_price = Decimal("22.50")
    db.commit()
    session = FakeSession()
    service = CatalogSyncService(db, make_registry({Platform.TRENDYOL_GO: session}))

    result = service.sync_menu(1, Platform.TRENDYOL_GO)

    assert result.synced == 1
    assert result.skipped == 0
    (call,) = session.calls_to("PUT /integrator/product/meal/suppliers/555/stores/777/products/T-10")
    assert call.json["price"] == 22.5


def test_price_is_left_out_when_price_sync_is_disabled(
    db, make_integration, make_registry, make_product, make_mapping
):
    make_integration(Platform.TRENDYOL_GO)
    product = make_product("Ayran")
    make_mapping(product, Platform.TRENDYOL_GO, "T-10", price_sync_enabled=False)
    session = FakeSession()
    service = CatalogSyncService(db, make_registry({Platform.TRENDYOL_GO: session}))

    service.sync_menu(1, Platform.TRENDYOL_GO, SyncOptions(sync_type="full"))

    (call,) = session.calls_to("PUT /integrator/product/meal/suppliers/555/stores/777/products/T-10")
    assert "price" not in call.json


def test_sync_closes_the_adapter(db, make_integration, make_registry, make_product, monkeypatch):
    closed = []
    monkeypatch.setattr(PlatformAdapter, "close", lambda self: closed.append(self.platform))
    make_integration(Platform.YEMEKSEPETI)
    make_product("Ayran")
    session = FakeSession({"POST /menu/products": ys_ok({"id": "YP-1"})})
    service = CatalogSyncService(db, make_registry({Platform.YEMEKSEPETI: session}))

    service.sync_menu(1, Platform.YEMEKSEPETI)
    service.sync_availability(1, Platform.YEMEKSEPETI)

    assert closed == [Platform.YEMEKSEPETI, Platform.YEMEKSEPETI]


def test_sync_without_active_integration_fails_fast(db, make_registry):
    service = CatalogSyncService(db, make_registry({}))

    result = service.sync_menu(1, Platform.GETIR)

    assert not result.success
    log = db.get(SyncAttemptLog, result.log_id)
    assert log.status == SyncRunStatus.FAILED


def test_unknown_platform_fails_fast(db, make_registry):
    result = CatalogSyncService(db, make_registry({})).sync_menu(1, "foodora")
    assert result.errors == ["Unknown platform: foodora"]


def test_availability_sync_respects_mapping_flags(db, make_integration, make_registry, make_product, make_mapping):
    make_integration(Platform.GETIR)
    soup = make_product("Mercimek Çorbası", is_available=False)
    rice = make_product("Pilav")
    make_mapping(soup, Platform.GETIR, "G-1")
    make_mapping(rice, Platform.GETIR, "G-2", availability_sync_enabled=False)
    session = FakeSession({"POST /auth/login": FakeResponse(200, {"token": "tok"})})
    service = CatalogSyncService(db, make_registry({Platform.GETIR: session}))

    result = service.sync_availability(1, Platform.GETIR)

    assert result.synced == 1
    status_calls = [c for c in session.calls if c.path.startswith("/products/")]
    assert [(c.path, c.json) for c in status_calls] == [("/products/G-1/status", {"status": 200})]
