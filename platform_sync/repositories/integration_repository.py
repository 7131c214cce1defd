"""
Integration repository.

Handles integration configuration database operations.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from platform_sync.constants.sync import IntegrationSyncStatus
from platform_sync.models.integration_models import IntegrationConfig
from platform_sync.utils.dates import utcnow


class IntegrationRepository:
    """Repository for per-restaurant platform configuration."""

    def __init__(self, db: Session):
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def get(self, restaurant_id: int, platform: str) -> Optional[IntegrationConfig]:
        return self.db.query(IntegrationConfig).filter(
            IntegrationConfig.restaurant_id == restaurant_id,
            IntegrationConfig.platform == platform
        ).first()

    def get_active(self, restaurant_id: int, platform: str) -> Optional[IntegrationConfig]:
        return self.db.query(IntegrationConfig).filter(
            IntegrationConfig.restaurant_id == restaurant_id,
            IntegrationConfig.platform == platform,
            IntegrationConfig.is_active.is_(True)
        ).first()

    def list_active(self, restaurant_id: Optional[int] = None) -> List[IntegrationConfig]:
        """
        Get active integrations, optionally for a single restaurant.

        Args:
            restaurant_id: Restrict to one restaurant

        Returns:
            Active IntegrationConfig rows ordered by platform
        """
        query = self.db.query(IntegrationConfig).filter(
            IntegrationConfig.is_active.is_(True)
        )
        if restaurant_id is not None:
            query = query.filter(IntegrationConfig.restaurant_id == restaurant_id)
        return query.order_by(IntegrationConfig.restaurant_id, IntegrationConfig.platform).all()

    def find_active_by_column(self, platform: str, column: str, value: str) -> Optional[IntegrationConfig]:
        """
        Find the active integration whose ``column`` equals ``value``.

        Args:
            platform: Platform id
            column: IntegrationConfig column name (vendor_id, store_id, seller_id)
            value: Reference sent by the platform
        """
        attr = getattr(IntegrationConfig, column)
        return self.db.query(IntegrationConfig).filter(
            IntegrationConfig.platform == platform,
            IntegrationConfig.is_active.is_(True),
            attr == value
        ).first()

    def set_sync_state(
        self,
        config: IntegrationConfig,
        status: str,
        error: Optional[str] = None
    ) -> IntegrationConfig:
        """
        Record the outcome of a sync attempt on the configuration row.

        ``last_error`` is cleared on success and only overwritten on error.
        """
        config.sync_status = status
        if status == IntegrationSyncStatus.SUCCESS:
            config.last_sync_at = utcnow()
            config.last_error = None
        elif status == IntegrationSyncStatus.ERROR:
            config.last_error = error
        self.db.commit()
        self.db.refresh(config)
        return config
