"""Constants for sync operations."""


class Platform:
    """Identifiers of the supported delivery marketplaces."""
    MIGROS_YEMEK = "migros-yemek"
    YEMEKSEPETI = "yemeksepeti"
    GETIR = "getir"
    TRENDYOL_GO = "trendyol-go"

    ALL = (MIGROS_YEMEK, YEMEKSEPETI, GETIR, TRENDYOL_GO)


class MappingSyncStatus:
    """ProductMapping.sync_status values."""
    SYNCED = "synced"
    PENDING = "pending"
    ERROR = "error"


class IntegrationSyncStatus:
    """IntegrationConfig.sync_status values."""
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


class SyncType:
    """SyncAttemptLog.sync_type values."""
    FULL = "full"
    INCREMENTAL = "incremental"
    ORDER_STATUS = "order_status"
    CANCEL = "cancel"
    AVAILABILITY = "availability"
    ORDER_PULL = "order_pull"


class SyncRunStatus:
    """SyncAttemptLog.status values."""
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class WebhookStatus:
    """Webhook processing status constants."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class FanOutAction:
    """Per-platform outcome of an orchestrated push."""
    PUSHED = "pushed"
    SKIPPED = "skipped"
    ERROR = "error"
