from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from platform_sync.db.base import Base
from platform_sync.utils.dates import utcnow


class IntegrationConfig(Base):
    __tablename__ = "integration_settings"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "platform", name="uq_integration_restaurant_platform"),
    )

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    platform = Column(String(50), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=False)

    # Credentials, owned by the operator configuration UI
    api_key = Column(String(255), nullable=True)
    api_secret = Column(String(255), nullable=True)
    app_secret_key = Column(String(255), nullable=True)
    restaurant_secret_key = Column(String(255), nullable=True)
    vendor_id = Column(String(100), nullable=True, index=True)
    store_id = Column(String(100), nullable=True, index=True)
    seller_id = Column(String(100), nullable=True, index=True)
    restaurant_name = Column(String(255), nullable=True)
    chain_code = Column(String(100), nullable=True)
    branch_code = Column(String(100), nullable=True)
    integration_code = Column(String(100), nullable=True)
    base_url = Column(String(500), nullable=True)
    webhook_url = Column(String(500), nullable=True)
    webhook_secret = Column(String(255), nullable=True)

    # Written back by the sync engine after each attempt
    last_sync_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    # idle, syncing, success, error
    sync_status = Column(String(20), nullable=False, default="idle")

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class SyncAttemptLog(Base):
    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    platform = Column(String(50), nullable=False, index=True)
    # full, incremental, order_status, cancel, availability, order_pull
    sync_type = Column(String(30), nullable=False)
    # running, completed, partial, failed
    status = Column(String(20), nullable=False, default="running")
    reference = Column(String(100), nullable=True)

    synced_categories = Column(Integer, nullable=False, default=0)
    failed_categories = Column(Integer, nullable=False, default=0)
    synced_products = Column(Integer, nullable=False, default=0)
    failed_products = Column(Integer, nullable=False, default=0)
    synced_items = Column(Integer, nullable=False, default=0)
    failed_items = Column(Integer, nullable=False, default=0)
    skipped_items = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=False, default=list)

    started_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime, nullable=True)


class WebhookLog(Base):
    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True, index=True)
    platform = Column(String(50), nullable=False, index=True)
    restaurant_id = Column(Integer, nullable=True, index=True)
    event_type = Column(String(100), nullable=True)
    payload_hash = Column(String(64), nullable=False, index=True)
    payload = Column(JSON, nullable=True)
    # pending, completed, failed
    status = Column(String(20), nullable=False, default="pending")
    external_order_id = Column(String(100), nullable=True)
    error_message = Column(Text, nullable=True)

    received_at = Column(DateTime, default=utcnow)
    processed_at = Column(DateTime, nullable=True)
