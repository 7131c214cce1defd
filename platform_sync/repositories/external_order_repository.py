"""
External order repository.

Mirror rows of orders that arrived from a platform, keyed by
(platform, external_order_id).
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from platform_sync.models.order_model import ExternalOrderRecord, Order


class ExternalOrderRepository:
    """Repository for external order records."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, platform: str, external_order_id: str) -> Optional[ExternalOrderRecord]:
        return self.db.query(ExternalOrderRecord).filter(
            ExternalOrderRecord.platform == platform,
            ExternalOrderRecord.external_order_id == str(external_order_id)
        ).first()

    def list_for_order(self, internal_order_id: int) -> List[ExternalOrderRecord]:
        """
        Get every platform record linked to an internal order.

        Args:
            internal_order_id: Internal order ID

        Returns:
            ExternalOrderRecord rows ordered by platform
        """
        return self.db.query(ExternalOrderRecord).filter(
            ExternalOrderRecord.internal_order_id == internal_order_id
        ).order_by(ExternalOrderRecord.platform).all()

    def get_order(self, order_id: int) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()
