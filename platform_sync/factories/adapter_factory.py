"""Factory for creating platform adapters."""

from typing import Any, Dict, Optional

import requests

from platform_sync.core.exceptions import PlatformSyncError
from platform_sync.models.integration_models import IntegrationConfig
from platform_sync.services.platforms import PlatformAdapter, PlatformCredentials, get_adapter_class


class PlatformAdapterFactory:
    """Factory class for creating platform adapters."""

    @staticmethod
    def from_credentials(
        credentials: PlatformCredentials,
        session: Optional[requests.Session] = None,
        **kwargs
    ) -> PlatformAdapter:
        """
        Create an adapter from a credential snapshot.

        Args:
            credentials: Plain-value copy of an integration configuration
            session: Optional HTTP session (tests inject a fake one)
            **kwargs: Overrides for timeout, max_attempts, retry_base_delay, sleep

        Returns:
            PlatformAdapter: Adapter for ``credentials.platform``

        Raises:
            PlatformSyncError: Unknown platform or missing credentials
        """
        adapter_class = get_adapter_class(credentials.platform)
        missing = adapter_class.missing_credentials(credentials)
        if missing:
            raise PlatformSyncError(
                f"Missing credentials: {', '.join(missing)}", credentials.platform
            )
        return adapter_class(credentials, session=session, **kwargs)

    @staticmethod
    def from_config(
        config: IntegrationConfig,
        session: Optional[requests.Session] = None,
        **kwargs
    ) -> PlatformAdapter:
        """
        Create an adapter from an IntegrationConfig model.

        Args:
            config: IntegrationConfig database model

        Returns:
            PlatformAdapter: Configured adapter
        """
        credentials = PlatformCredentials.from_config(config)
        return PlatformAdapterFactory.from_credentials(credentials, session=session, **kwargs)

    @staticmethod
    def from_dict(platform: str, restaurant_id: int, values: Dict[str, Any], **kwargs) -> PlatformAdapter:
        """
        Create an adapter from a configuration dictionary.

        Args:
            platform: Platform id
            restaurant_id: Owning restaurant
            values: Credential fields keyed by IntegrationConfig column name
        """
        credentials = PlatformCredentials(restaurant_id=restaurant_id, platform=platform, **values)
        return PlatformAdapterFactory.from_credentials(credentials, **kwargs)
