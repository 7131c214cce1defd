from typing import Dict, Type

from platform_sync.core.exceptions import PlatformSyncError
from platform_sync.services.platforms.base import PlatformAdapter, PlatformCredentials
from platform_sync.services.platforms.getir import GetirFoodAdapter
from platform_sync.services.platforms.migros_yemek import MigrosYemekAdapter
from platform_sync.services.platforms.trendyol_go import TrendyolGoAdapter
from platform_sync.services.platforms.yemeksepeti import YemeksepetiAdapter

ADAPTER_CLASSES: Dict[str, Type[PlatformAdapter]] = {
    cls.platform: cls
    for cls in (MigrosYemekAdapter, YemeksepetiAdapter, GetirFoodAdapter, TrendyolGoAdapter)
}


def get_adapter_class(platform: str) -> Type[PlatformAdapter]:
    try:
        return ADAPTER_CLASSES[platform]
    except KeyError:
        raise PlatformSyncError(f"Unknown platform: {platform}", platform)


__all__ = [
    "ADAPTER_CLASSES",
    "PlatformAdapter",
    "PlatformCredentials",
    "get_adapter_class",
]
