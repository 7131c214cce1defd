from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./platform_sync.db"
    log_level: str = "INFO"

    # Celery
    celery_broker_url: str = "redis://redis:6379/0"
    celery_result_backend: str = "redis://redis:6379/1"
    celery_task_serializer: str = "json"
    celery_result_serializer: str = "json"
    celery_accept_content: List[str] = ["json"]
    celery_timezone: str = "Europe/Istanbul"
    celery_enable_utc: bool = True

    # Outbound platform calls
    platform_request_timeout: float = 10.0
    platform_max_attempts: int = 3
    platform_retry_base_delay: float = 1.0
    fanout_global_limit: int = 16

    # Scheduled jobs
    order_pull_limit: int = 50
    order_pull_lookback_hours: int = 24
    order_pull_interval_seconds: float = 120.0
    menu_sync_interval_seconds: float = 3600.0

    # Default platform endpoints, overridable per IntegrationConfig.base_url
    migros_yemek_base_url: str = "https://api.migros.com.tr"
    yemeksepeti_base_url: str = "https://hesapapps-integration.yemeksepeti.com/api/v1"
    getir_base_url: str = "https://developers.getir.com"
    trendyol_go_base_url: str = "https://api.tgoapis.com"

    class Config:
        env_file = ".env"


settings = Settings()
