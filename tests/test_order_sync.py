import threading

import requests

from platform_sync.constants.order_status import OrderStatus
from platform_sync.constants.sync import (
    FanOutAction,
    IntegrationSyncStatus,
    MappingSyncStatus,
    Platform,
    SyncRunStatus,
    SyncType,
)
from platform_sync.models.integration_models import SyncAttemptLog
from platform_sync.models.order_model import ExternalOrderRecord
from platform_sync.repositories.mapping_repository import CategoryMappingRepository
from platform_sync.services import order_sync
from platform_sync.services.order_sync import OrderSyncOrchestrator
from platform_sync.services.platforms.base import PlatformAdapter

from fakes import FakeResponse, FakeSession

YS_OK = FakeResponse(200, {"success": True, "data": {}})
TGO_STATUS = "PUT /integrator/order/meal/suppliers/555/packages/PKG-1/status"


def record_for(db, platform):
    return db.query(ExternalOrderRecord).filter(ExternalOrderRecord.platform == platform).one()


def failure_logs(db, platform):
    return db.query(SyncAttemptLog).filter(
        SyncAttemptLog.platform == platform,
        SyncAttemptLog.status == SyncRunStatus.FAILED
    ).all()


def test_timeout_on_one_platform_does_not_block_the_other(db, make_integration, make_registry, make_order):
    """Test: Yemeksepeti succeeds while Trendyol GO times out"""
    ys_config = make_integration(Platform.YEMEKSEPETI)
    tgo_config = make_integration(Platform.TRENDYOL_GO)
    order = make_order({
        Platform.YEMEKSEPETI: ("YS-1", "confirmed"),
        Platform.TRENDYOL_GO: ("PKG-1", "CONFIRMED"),
    })
    ys = FakeSession({"PUT /orders/YS-1/status": YS_OK})
    tgo = FakeSession({TGO_STATUS: requests.Timeout("read timed out")})
    orchestrator = OrderSyncOrchestrator(db, make_registry({Platform.YEMEKSEPETI: ys, Platform.TRENDYOL_GO: tgo}))

    result = orchestrator.propagate_status_change(order.id, OrderStatus.PREPARING)

    assert result.pushed_platforms == [Platform.YEMEKSEPETI]
    assert result.failed_platforms == [Platform.TRENDYOL_GO]
    assert result.by_platform()[Platform.TRENDYOL_GO].error_type == "PlatformConnectionError"

    ys_record = record_for(db, Platform.YEMEKSEPETI)
    assert ys_record.external_status == "preparing"
    assert ys_record.status == OrderStatus.PREPARING.value

    tgo_record = record_for(db, Platform.TRENDYOL_GO)
    assert tgo_record.external_status == "CONFIRMED"
    assert tgo_record.status == OrderStatus.CONFIRMED.value

    assert len(tgo.calls_to(TGO_STATUS)) == 3
    assert len(failure_logs(db, Platform.TRENDYOL_GO)) == 1
    assert failure_logs(db, Platform.YEMEKSEPETI) == []

    db.refresh(ys_config)
    db.refresh(tgo_config)
    assert ys_config.sync_status == IntegrationSyncStatus.SUCCESS
    assert tgo_config.sync_status == IntegrationSyncStatus.ERROR
    assert "Timeout" in tgo_config.last_error


def test_platforms_are_pushed_concurrently(db, make_integration, make_registry, make_order):
    make_integration(Platform.YEMEKSEPETI)
    make_integration(Platform.TRENDYOL_GO)
    order = make_order({
        Platform.YEMEKSEPETI: ("YS-1", "confirmed"),
        Platform.TRENDYOL_GO: ("PKG-1", "CONFIRMED"),
    })
    # Each call blocks until the other platform's call has started
    barrier = threading.Barrier(2, timeout=5)

    def meet(response):
        def respond():
            barrier.wait()
            return response
        return respond

    ys = FakeSession({"PUT /orders/YS-1/status": meet(YS_OK)})
    tgo = FakeSession({TGO_STATUS: meet(FakeResponse(200, {}))})
    orchestrator = OrderSyncOrchestrator(db, make_registry({Platform.YEMEKSEPETI: ys, Platform.TRENDYOL_GO: tgo}))

    result = orchestrator.propagate_status_change(order.id, OrderStatus.READY_FOR_PICKUP)

    assert sorted(result.pushed_platforms) == sorted([Platform.YEMEKSEPETI, Platform.TRENDYOL_GO])


def test_platform_already_in_target_status_is_skipped(db, make_integration, make_registry, make_order):
    make_integration(Platform.YEMEKSEPETI)
    order = make_order({Platform.YEMEKSEPETI: ("YS-1", "preparing")}, status="preparing")
    ys = FakeSession()
    orchestrator = OrderSyncOrchestrator(db, make_registry({Platform.YEMEKSEPETI: ys}))

    result = orchestrator.propagate_status_change(order.id, "preparing")

    outcome = result.by_platform()[Platform.YEMEKSEPETI]
    assert outcome.action == FanOutAction.SKIPPED
    assert ys.calls == []
    assert db.query(SyncAttemptLog).count() == 0


def test_unmapped_status_is_a_mapping_error(db, make_integration, make_registry, make_order):
    """Test: Getir never receives pending, and integration health is untouched"""
    getir_config = make_integration(Platform.GETIR)
    order = make_order({Platform.GETIR: ("G-1", "NEW")}, status="pending")
    getir = FakeSession()
    orchestrator = OrderSyncOrchestrator(db, make_registry({Platform.GETIR: getir}))

    result = orchestrator.propagate_status_change(order.id, OrderStatus.PENDING)

    outcome = result.by_platform()[Platform.GETIR]
    assert outcome.action == FanOutAction.ERROR
    assert outcome.error_type == "mapping"
    assert getir.calls == []
    logs = failure_logs(db, Platform.GETIR)
    assert len(logs) == 1
    assert logs[0].reference == "G-1"
    db.refresh(getir_config)
    assert getir_config.last_error is None
    assert getir_config.sync_status == IntegrationSyncStatus.IDLE


def test_platform_without_the_order_is_skipped(db, make_integration, make_registry, make_order):
    make_integration(Platform.YEMEKSEPETI)
    make_integration(Platform.GETIR)
    order = make_order({Platform.YEMEKSEPETI: ("YS-1", "confirmed")})
    getir = FakeSession()
    orchestrator = OrderSyncOrchestrator(
        db, make_registry({Platform.YEMEKSEPETI: FakeSession({"PUT /orders/YS-1/status": YS_OK}), Platform.GETIR: getir})
    )

    result = orchestrator.propagate_status_change(order.id, OrderStatus.PREPARING)

    assert result.by_platform()[Platform.GETIR].action == FanOutAction.SKIPPED
    assert result.pushed_platforms == [Platform.YEMEKSEPETI]
    assert getir.calls == []


def test_inactive_integrations_are_ignored(db, make_integration, make_registry, make_order):
    make_integration(Platform.YEMEKSEPETI, is_active=False)
    order = make_order({Platform.YEMEKSEPETI: ("YS-1", "confirmed")})

    result = OrderSyncOrchestrator(db, make_registry({})).propagate_status_change(order.id, "preparing")

    assert result.outcomes == []


def test_unknown_status_or_order_is_a_no_op(db, make_registry, make_order):
    order = make_order({})
    orchestrator = OrderSyncOrchestrator(db, make_registry({}))

    assert orchestrator.propagate_status_change(order.id, "teleported").outcomes == []
    assert orchestrator.propagate_status_change(9999, "confirmed").outcomes == []
    assert orchestrator.cancel_order(9999, "no such order").outcomes == []


def test_cancel_reaches_every_platform(db, make_integration, make_registry, make_order):
    make_integration(Platform.YEMEKSEPETI)
    make_integration(Platform.TRENDYOL_GO)
    order = make_order({
        Platform.YEMEKSEPETI: ("YS-1", "confirmed"),
        Platform.TRENDYOL_GO: ("PKG-1", "CONFIRMED"),
    })
    ys = FakeSession({"POST /orders/YS-1/reject": YS_OK})
    tgo = FakeSession()
    orchestrator = OrderSyncOrchestrator(db, make_registry({Platform.YEMEKSEPETI: ys, Platform.TRENDYOL_GO: tgo}))

    result = orchestrator.cancel_order(order.id, "Restaurant closed")

    assert result.operation == SyncType.CANCEL
    assert sorted(result.pushed_platforms) == sorted([Platform.YEMEKSEPETI, Platform.TRENDYOL_GO])
    assert ys.calls[0].json == {"reason": "Restaurant closed"}
    assert tgo.calls[0].json == {"status": "CANCELLED", "rejectReason": "Restaurant closed"}
    assert record_for(db, Platform.YEMEKSEPETI).external_status == "cancelled"
    assert record_for(db, Platform.TRENDYOL_GO).status == OrderStatus.CANCELLED.value


def test_availability_fan_out_marks_each_mapping(db, make_integration, make_registry, make_product, make_mapping):
    make_integration(Platform.YEMEKSEPETI)
    make_integration(Platform.GETIR)
    product = make_product("Künefe")
    ys_mapping = make_mapping(product, Platform.YEMEKSEPETI, "YP-1")
    getir_mapping = make_mapping(product, Platform.GETIR, "G-1")
    ys = FakeSession({"PUT /menu/products/YP-1/availability": YS_OK})
    getir = FakeSession({
        "POST /auth/login": FakeResponse(200, {"token": "tok"}),
        "PUT /products/G-1/status": FakeResponse(500, text="internal error"),
    })
    orchestrator = OrderSyncOrchestrator(db, make_registry({Platform.YEMEKSEPETI: ys, Platform.GETIR: getir}))

    result = orchestrator.update_menu_item_availability(1, product.id, False)

    assert result.pushed_platforms == [Platform.YEMEKSEPETI]
    assert result.failed_platforms == [Platform.GETIR]
    assert ys.calls[0].json == {"is_available": False}
    db.refresh(ys_mapping)
    db.refresh(getir_mapping)
    assert ys_mapping.sync_status == MappingSyncStatus.SYNCED
    assert getir_mapping.sync_status == MappingSyncStatus.ERROR
    assert "500" in getir_mapping.error_message


def test_availability_skips_disabled_and_unmapped(db, make_integration, make_registry, make_product, make_mapping):
    make_integration(Platform.YEMEKSEPETI)
    make_integration(Platform.GETIR)
    product = make_product("Ayran")
    make_mapping(product, Platform.YEMEKSEPETI, "YP-1", availability_sync_enabled=False)
    sessions = {Platform.YEMEKSEPETI: FakeSession(), Platform.GETIR: FakeSession()}

    result = OrderSyncOrchestrator(db, make_registry(sessions)).update_menu_item_availability(1, product.id, True)

    assert {o.action for o in result.outcomes} == {FanOutAction.SKIPPED}
    assert sessions[Platform.YEMEKSEPETI].calls == []
    assert sessions[Platform.GETIR].calls == []


def test_category_availability_fan_out(db, make_integration, make_registry, make_category):
    """Test: Trendyol GO closes the section, Getir has no such operation, Yemeksepeti is unmapped"""
    make_integration(Platform.YEMEKSEPETI)
    getir_config = make_integration(Platform.GETIR)
    make_integration(Platform.TRENDYOL_GO)
    desserts = make_category("Tatlılar")
    mappings = CategoryMappingRepository(db)
    mappings.save(1, Platform.GETIR, desserts.id, "GC-1")
    mappings.save(1, Platform.TRENDYOL_GO, desserts.id, "S-1")
    sessions = {
        Platform.YEMEKSEPETI: FakeSession(),
        Platform.GETIR: FakeSession({"POST /auth/login": FakeResponse(200, {"token": "tok"})}),
        Platform.TRENDYOL_GO: FakeSession(),
    }

    result = OrderSyncOrchestrator(db, make_registry(sessions)).update_category_availability(1, desserts.id, False)

    outcomes = result.by_platform()
    assert result.pushed_platforms == [Platform.TRENDYOL_GO]
    assert result.failed_platforms == []
    assert outcomes[Platform.GETIR].action == FanOutAction.SKIPPED
    assert "category availability" in outcomes[Platform.GETIR].message
    assert outcomes[Platform.YEMEKSEPETI].message == "Category not mapped"
    (call,) = sessions[Platform.TRENDYOL_GO].calls
    assert call.path == "/integrator/product/meal/suppliers/555/stores/777/sections/S-1/status"
    assert call.json == {"status": "PASSIVE"}
    assert sessions[Platform.GETIR].calls == []
    assert failure_logs(db, Platform.GETIR) == []
    db.refresh(getir_config)
    assert getir_config.sync_status != IntegrationSyncStatus.ERROR


def test_fan_out_releases_per_order_locks(db, make_integration, make_registry, make_order):
    make_integration(Platform.YEMEKSEPETI)
    order = make_order({Platform.YEMEKSEPETI: ("YS-1", "confirmed")})
    ys = FakeSession(default=YS_OK)
    orchestrator = OrderSyncOrchestrator(db, make_registry({Platform.YEMEKSEPETI: ys}))

    orchestrator.propagate_status_change(order.id, OrderStatus.PREPARING)
    orchestrator.cancel_order(order.id, "Out of stock")

    assert len(ys.calls) == 2
    assert order_sync._key_locks == {}


def test_fan_out_closes_every_adapter(db, make_integration, make_registry, make_order, monkeypatch):
    closed = []
    monkeypatch.setattr(PlatformAdapter, "close", lambda self: closed.append(self.platform))
    make_integration(Platform.YEMEKSEPETI)
    make_integration(Platform.TRENDYOL_GO)
    order = make_order({Platform.YEMEKSEPETI: ("YS-1", "confirmed")})
    sessions = {Platform.YEMEKSEPETI: FakeSession(default=YS_OK), Platform.TRENDYOL_GO: FakeSession()}

    OrderSyncOrchestrator(db, make_registry(sessions)).cancel_order(order.id, "Closed early")

    assert sorted(closed) == sorted([Platform.YEMEKSEPETI, Platform.TRENDYOL_GO])


def test_connection_check_reports_each_platform(db, make_integration, make_registry):
    make_integration(Platform.YEMEKSEPETI)
    make_integration(Platform.TRENDYOL_GO)
    sessions = {
        Platform.YEMEKSEPETI: FakeSession({"GET /test": YS_OK}),
        Platform.TRENDYOL_GO: FakeSession(default=FakeResponse(401, text="unauthorized")),
    }

    status = OrderSyncOrchestrator(db, make_registry(sessions)).test_all_integrations(1)

    assert status == {Platform.YEMEKSEPETI: True, Platform.TRENDYOL_GO: False}
