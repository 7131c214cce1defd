"""
Integration registry.

Resolves which platforms a restaurant is live on and builds one adapter per
active IntegrationConfig row. Zero active rows is a normal state, not an error.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from platform_sync.constants.sync import IntegrationSyncStatus
from platform_sync.core.exceptions import PlatformSyncError
from platform_sync.factories.adapter_factory import PlatformAdapterFactory
from platform_sync.models.integration_models import IntegrationConfig
from platform_sync.repositories.integration_repository import IntegrationRepository
from platform_sync.services.platforms import ADAPTER_CLASSES, PlatformAdapter

logger = logging.getLogger(__name__)


class IntegrationRegistry:
    """Lookup and write-back for per-restaurant platform integrations."""

    def __init__(self, db: Session, adapter_factory=PlatformAdapterFactory.from_config):
        """
        Args:
            db: SQLAlchemy database session
            adapter_factory: Callable building an adapter from an IntegrationConfig
        """
        self.db = db
        self.repo = IntegrationRepository(db)
        self.adapter_factory = adapter_factory

    def _build(self, config: IntegrationConfig) -> Optional[PlatformAdapter]:
        if config.platform not in ADAPTER_CLASSES:
            logger.warning(
                f"Skipping integration {config.id}: no adapter for platform '{config.platform}'"
            )
            return None
        try:
            return self.adapter_factory(config)
        except PlatformSyncError as e:
            logger.warning(f"Skipping integration {config.id} for restaurant {config.restaurant_id}: {e}")
            return None

    def active_adapters_for(self, restaurant_id: int) -> List[Tuple[str, PlatformAdapter]]:
        """
        Build adapters for every active integration of a restaurant.

        Args:
            restaurant_id: Restaurant ID

        Returns:
            List of (platform, adapter); empty when nothing is active
        """
        adapters = []
        for config in self.repo.list_active(restaurant_id):
            adapter = self._build(config)
            if adapter is not None:
                adapters.append((config.platform, adapter))
        logger.debug(f"Restaurant {restaurant_id} has {len(adapters)} active platform adapter(s)")
        return adapters

    def adapter_for(self, restaurant_id: int, platform: str) -> Optional[PlatformAdapter]:
        config = self.repo.get_active(restaurant_id, platform)
        if config is None:
            return None
        return self._build(config)

    def config_for(self, restaurant_id: int, platform: str) -> Optional[IntegrationConfig]:
        return self.repo.get_active(restaurant_id, platform)

    def config_for_store(self, platform: str, store_reference: Optional[str]) -> Optional[IntegrationConfig]:
        """
        Find the active integration an inbound payload belongs to.

        The store reference is matched against the column the platform's
        adapter declares (vendor_id, store_id or seller_id).
        """
        adapter_class = ADAPTER_CLASSES.get(platform)
        if adapter_class is None or not store_reference:
            return None
        return self.repo.find_active_by_column(
            platform, adapter_class.store_reference_field, str(store_reference)
        )

    def mark_syncing(self, config: IntegrationConfig) -> IntegrationConfig:
        return self.repo.set_sync_state(config, IntegrationSyncStatus.SYNCING)

    def mark_success(self, config: IntegrationConfig) -> IntegrationConfig:
        return self.repo.set_sync_state(config, IntegrationSyncStatus.SUCCESS)

    def mark_error(self, config: IntegrationConfig, error: str) -> IntegrationConfig:
        logger.error(f"Integration {config.platform} for restaurant {config.restaurant_id} failed: {error}")
        return self.repo.set_sync_state(config, IntegrationSyncStatus.ERROR, error)
