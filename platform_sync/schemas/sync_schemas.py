"""
Schemas for sync runs and fan-out results
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class SyncOptions(BaseModel):
    """Options for a catalog sync run"""
    sync_type: str = Field(default="incremental", description="full, incremental")
    categories: bool = Field(default=True, description="Push categories")
    products: bool = Field(default=True, description="Push products")


class SyncResult(BaseModel):
    """Outcome of a catalog sync run"""
    platform: str
    synced: int = 0
    failed: int = 0
    skipped: int = Field(default=0, description="Items left unchanged because the platform does not accept the update")
    errors: List[str] = Field(default_factory=list)
    log_id: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.failed == 0 and not self.errors


class PlatformOutcome(BaseModel):
    """Result of one platform's attempt during a fan-out"""
    platform: str
    action: str = Field(..., description="pushed, skipped, error")
    external_status: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class FanOutResult(BaseModel):
    """Joined outcomes of a fan-out across every active platform"""
    operation: str
    restaurant_id: Optional[int] = None
    outcomes: List[PlatformOutcome] = Field(default_factory=list)

    @property
    def failed_platforms(self) -> List[str]:
        return [o.platform for o in self.outcomes if o.action == "error"]

    @property
    def pushed_platforms(self) -> List[str]:
        return [o.platform for o in self.outcomes if o.action == "pushed"]

    def by_platform(self) -> Dict[str, PlatformOutcome]:
        return {o.platform: o for o in self.outcomes}
