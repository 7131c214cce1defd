import copy
import json
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from platform_sync.constants.sync import Platform, SyncRunStatus
from platform_sync.core.exceptions import IngestError
from platform_sync.models.integration_models import SyncAttemptLog
from platform_sync.models.order_model import ExternalOrderItem, ExternalOrderRecord, Order, OrderItem
from platform_sync.services import payload_cipher
from platform_sync.services.order_ingest import OrderIngestor
from platform_sync.services.platforms.base import PlatformAdapter

from conftest import MIGROS_SECRET
from fakes import FakeResponse, FakeSession

YEMEKSEPETI_ORDER = {
    "id": "YS-9",
    "order_number": "9001",
    "status": "confirmed",
    "restaurant_code": "YS-100",
    "customer": {"name": "Zeynep Kaya", "phone": "+905321234567", "email": "zeynep@example.com"},
    "delivery_address": {"address": "Caferağa Mah. 12", "latitude": 40.99, "longitude": 29.03},
    "items": [
        {"product_id": "YP-1", "product_name": "Adana Kebap", "quantity": 1, "unit_price": 220.0},
        {"product_id": "YP-X", "product_name": "ayran", "quantity": 2, "unit_price": 25.0, "total_price": 50.0},
    ],
    "subtotal": 270.0,
    "delivery_fee": 0,
    "total_amount": 270.0,
    "commission": 40.5,
    "payment_method": "online",
    "notes": "Acısız olsun",
    "order_date": "2026-10-19T11:30:00",
}

GETIR_ORDER = {
    "id": "G-1",
    "orderNumber": "501",
    "status": "CONFIRMED",
    "restaurantId": "GT-100",
    "customer": {"name": "Ali"},
    "items": [{"productId": "GP-1", "productName": "Mantı", "quantity": 1, "unitPrice": "90.00"}],
    "totalAmount": "90.00",
    "finalAmount": "90.00",
}

MIGROS_ORDER = {
    "id": 7001,
    "status": "CONFIRMED",
    "store": {"id": "MG-100"},
    "customer": {"fullName": "Can Demir"},
    "prices": {"total": {"amountAsPenny": 9900}},
    "payment": {"type": {"isOnlinePayment": False}},
    "items": [{"productId": 3, "name": "Lahmacun", "amount": 3, "price": 3300}],
}


def webhook(order, event="order.created"):
    return {"event": event, "restaurant_code": order["restaurant_code"], "data": order}


def test_ingest_creates_record_and_internal_order(db, make_integration, make_product, make_mapping):
    make_integration(Platform.YEMEKSEPETI)
    kebab = make_product("Adana Kebap")
    ayran = make_product("Ayran")
    make_mapping(kebab, Platform.YEMEKSEPETI, "YP-1")

    order_id = OrderIngestor(db).ingest(Platform.YEMEKSEPETI, webhook(YEMEKSEPETI_ORDER))

    record = db.query(ExternalOrderRecord).one()
    assert record.internal_order_id == order_id
    assert record.restaurant_id == 1
    assert record.status == "confirmed"
    assert record.external_status == "confirmed"
    assert record.needs_review is False
    assert record.platform_commission == Decimal("40.50")
    # Mapped by product mapping, then by name
    assert sorted(i.internal_product_id for i in record.items) == sorted([kebab.id, ayran.id])

    order = db.get(Order, order_id)
    assert order.status == "confirmed"
    assert order.source_platform == Platform.YEMEKSEPETI
    assert order.total_amount == Decimal("270.00")
    assert len(order.items) == 2


def test_redelivery_is_idempotent(db, make_integration):
    make_integration(Platform.YEMEKSEPETI)
    ingestor = OrderIngestor(db)

    first = ingestor.ingest(Platform.YEMEKSEPETI, webhook(YEMEKSEPETI_ORDER))
    second = ingestor.ingest(Platform.YEMEKSEPETI, json.dumps(webhook(YEMEKSEPETI_ORDER)).encode())

    assert first == second
    assert db.query(ExternalOrderRecord).count() == 1
    assert db.query(Order).count() == 1
    assert db.query(ExternalOrderItem).count() == 2
    assert db.query(OrderItem).count() == 2


def test_status_update_flows_to_internal_order(db, make_integration):
    make_integration(Platform.YEMEKSEPETI)
    ingestor = OrderIngestor(db)
    order_id = ingestor.ingest(Platform.YEMEKSEPETI, webhook(YEMEKSEPETI_ORDER))

    updated = dict(YEMEKSEPETI_ORDER, status="on_the_way")
    ingestor.ingest(Platform.YEMEKSEPETI, webhook(updated, "order.updated"))

    assert db.query(ExternalOrderRecord).one().status == "out_for_delivery"
    assert db.get(Order, order_id).status == "out_for_delivery"


def test_unknown_status_on_new_order_is_flagged(db, make_integration):
    """Test: An unknown token creates a pending order that needs review"""
    make_integration(Platform.GETIR)
    payload = dict(GETIR_ORDER, status="NEW_PENDING")

    order_id = OrderIngestor(db).ingest(Platform.GETIR, payload)

    record = db.query(ExternalOrderRecord).one()
    assert record.status == "pending"
    assert record.external_status == "NEW_PENDING"
    assert record.needs_review is True
    assert "NEW_PENDING" in record.review_reason
    assert db.get(Order, order_id).status == "pending"


def test_unknown_status_on_existing_order_keeps_status(db, make_integration):
    make_integration(Platform.GETIR)
    ingestor = OrderIngestor(db)
    order_id = ingestor.ingest(Platform.GETIR, GETIR_ORDER)

    ingestor.ingest(Platform.GETIR, dict(GETIR_ORDER, status="COURIER_LOST"))

    record = db.query(ExternalOrderRecord).one()
    assert record.status == "confirmed"
    assert record.needs_review is True
    assert db.get(Order, order_id).status == "confirmed"

    ingestor.ingest(Platform.GETIR, dict(GETIR_ORDER, status="READY"))
    db.refresh(record)
    assert record.status == "ready_for_pickup"
    assert record.needs_review is False


def test_cancellation_event_keeps_order_details(db, make_integration):
    """Test: A cancellation webhook carrying only id and reason cancels without wiping the order"""
    make_integration(Platform.YEMEKSEPETI)
    ingestor = OrderIngestor(db)
    order_id = ingestor.ingest(Platform.YEMEKSEPETI, webhook(YEMEKSEPETI_ORDER))

    ingestor.ingest(Platform.YEMEKSEPETI, {
        "event": "order.cancelled",
        "restaurant_code": "YS-100",
        "data": {"id": "YS-9", "reason": "customer"},
    })

    record = db.query(ExternalOrderRecord).one()
    assert record.status == "cancelled"
    assert record.external_status == "cancelled"
    assert record.needs_review is False
    assert record.customer_name == "Zeynep Kaya"
    assert record.total_amount == Decimal("270.00")
    assert len(record.items) == 2
    assert record.raw_data == {"id": "YS-9", "reason": "customer", "restaurant_code": "YS-100"}

    order = db.get(Order, order_id)
    assert order.status == "cancelled"
    assert order.customer_name == "Zeynep Kaya"
    assert order.total_amount == Decimal("270.00")
    assert len(order.items) == 2


def test_encrypted_envelope_is_decoded(db, make_integration):
    make_integration(Platform.MIGROS_YEMEK)
    envelope = payload_cipher.encode(MIGROS_ORDER, MIGROS_SECRET)

    order_id = OrderIngestor(db).ingest(Platform.MIGROS_YEMEK, envelope, restaurant_id=1)

    record = db.query(ExternalOrderRecord).one()
    assert record.external_order_id == "7001"
    assert record.subtotal == Decimal("99.00")
    assert record.payment_method == "cash"
    assert db.get(Order, order_id).items[0].quantity == 3


def test_encrypted_order_with_unknown_status_is_flagged(db, make_integration):
    make_integration(Platform.MIGROS_YEMEK)
    envelope = payload_cipher.encode(dict(MIGROS_ORDER, status="NEW_PENDING"), MIGROS_SECRET)

    order_id = OrderIngestor(db).ingest(Platform.MIGROS_YEMEK, envelope, restaurant_id=1)

    record = db.query(ExternalOrderRecord).one()
    assert record.status == "pending"
    assert record.external_status == "NEW_PENDING"
    assert record.needs_review is True
    assert db.get(Order, order_id).status == "pending"


def test_envelope_with_wrong_secret_is_rejected(db, make_integration):
    make_integration(Platform.MIGROS_YEMEK, api_secret="ffffffffffffffffffffffffffffffff")
    envelope = payload_cipher.encode(MIGROS_ORDER, MIGROS_SECRET)

    with pytest.raises(IngestError):
        OrderIngestor(db).ingest(Platform.MIGROS_YEMEK, envelope, restaurant_id=1)
    assert db.query(ExternalOrderRecord).count() == 0


def test_envelope_without_known_restaurant_is_rejected(db, make_integration):
    make_integration(Platform.MIGROS_YEMEK)
    envelope = payload_cipher.encode(MIGROS_ORDER, MIGROS_SECRET)

    with pytest.raises(IngestError):
        OrderIngestor(db).ingest(Platform.MIGROS_YEMEK, envelope)


def test_plain_migros_payload_resolves_restaurant_by_vendor(db, make_integration):
    make_integration(Platform.MIGROS_YEMEK, restaurant_id=3)

    order_id = OrderIngestor(db).ingest(Platform.MIGROS_YEMEK, MIGROS_ORDER)

    assert db.get(Order, order_id).restaurant_id == 3


@pytest.mark.parametrize("payload", [
    b"{not json",
    "[1, 2, 3]",
    {"status": "CONFIRMED", "restaurantId": "GT-100"},
])
def test_malformed_payloads_are_rejected(db, make_integration, payload):
    make_integration(Platform.GETIR)
    with pytest.raises(IngestError):
        OrderIngestor(db).ingest(Platform.GETIR, payload)
    assert db.query(Order).count() == 0


def test_unknown_store_reference_is_rejected(db, make_integration):
    make_integration(Platform.GETIR)
    with pytest.raises(IngestError):
        OrderIngestor(db).ingest(Platform.GETIR, dict(GETIR_ORDER, restaurantId="SOMEONE-ELSE"))


def test_unknown_platform_is_rejected(db):
    with pytest.raises(IngestError):
        OrderIngestor(db).ingest("foodora", GETIR_ORDER, restaurant_id=1)


def test_pull_isolates_bad_orders(db, make_integration, make_registry):
    make_integration(Platform.GETIR)
    broken = {"status": "NEW"}
    second = copy.deepcopy(GETIR_ORDER)
    second["id"] = "G-2"
    session = FakeSession({
        "POST /auth/login": FakeResponse(200, {"token": "tok"}),
        "GET /food-orders": FakeResponse(200, {"orders": [GETIR_ORDER, broken, second]}),
    })
    ingestor = OrderIngestor(db, make_registry({Platform.GETIR: session}))

    result = ingestor.pull_orders(1, Platform.GETIR)

    assert result.synced == 2
    assert result.failed == 1
    assert db.query(ExternalOrderRecord).count() == 2
    assert db.get(SyncAttemptLog, result.log_id).status == SyncRunStatus.PARTIAL


def test_pull_resumes_from_last_run(db, make_integration, make_registry):
    make_integration(Platform.GETIR)
    session = FakeSession({
        "POST /auth/login": FakeResponse(200, {"token": "tok"}),
        "GET /food-orders": FakeResponse(200, {"orders": []}),
    })
    ingestor = OrderIngestor(db, make_registry({Platform.GETIR: session}))

    first = ingestor.pull_orders(1, Platform.GETIR)
    ingestor.pull_orders(1, Platform.GETIR)

    first_log = db.get(SyncAttemptLog, first.log_id)
    pulls = session.calls_to("GET /food-orders")
    assert pulls[1].params["startDate"] == first_log.started_at.isoformat()


def test_pull_from_webhook_only_platform_fails_cleanly(db, make_integration, make_registry):
    config = make_integration(Platform.MIGROS_YEMEK)

    result = OrderIngestor(db, make_registry({})).pull_orders(1, Platform.MIGROS_YEMEK)

    assert not result.success
    db.refresh(config)
    assert config.last_error


def test_pull_aborted_by_database_error_still_closes_the_log(db, make_integration, make_registry, monkeypatch):
    make_integration(Platform.GETIR)
    session = FakeSession({
        "POST /auth/login": FakeResponse(200, {"token": "tok"}),
        "GET /food-orders": FakeResponse(200, {"orders": [GETIR_ORDER]}),
    })
    ingestor = OrderIngestor(db, make_registry({Platform.GETIR: session}))

    def broken_ingest(*args, **kwargs):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(ingestor, "ingest", broken_ingest)

    with pytest.raises(SQLAlchemyError):
        ingestor.pull_orders(1, Platform.GETIR)

    log = db.query(SyncAttemptLog).one()
    assert log.status == SyncRunStatus.FAILED
    assert log.completed_at is not None
    assert "database is locked" in log.errors[0]


def test_pull_closes_the_adapter(db, make_integration, make_registry, monkeypatch):
    closed = []
    monkeypatch.setattr(PlatformAdapter, "close", lambda self: closed.append(self.platform))
    make_integration(Platform.GETIR)
    session = FakeSession({
        "POST /auth/login": FakeResponse(200, {"token": "tok"}),
        "GET /food-orders": FakeResponse(500, text="unavailable"),
    })

    result = OrderIngestor(db, make_registry({Platform.GETIR: session})).pull_orders(1, Platform.GETIR)

    assert not result.success
    assert closed == [Platform.GETIR]
