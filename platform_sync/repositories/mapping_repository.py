"""
Mapping repositories.

Product and category mappings link an internal catalog row to its id on one
platform. There is at most one mapping per (restaurant, platform, internal id);
saving an existing key updates it in place.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from platform_sync.constants.sync import MappingSyncStatus
from platform_sync.models.catalog_models import CategoryMapping, ProductMapping
from platform_sync.utils.dates import utcnow


class ProductMappingRepository:
    """Repository for platform product mappings."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, restaurant_id: int, platform: str, product_id: int) -> Optional[ProductMapping]:
        return self.db.query(ProductMapping).filter(
            ProductMapping.restaurant_id == restaurant_id,
            ProductMapping.platform == platform,
            ProductMapping.internal_product_id == product_id
        ).first()

    def list_for_restaurant(
        self,
        restaurant_id: int,
        platform: str,
        availability_only: bool = False
    ) -> List[ProductMapping]:
        """
        Get mappings of one restaurant on one platform.

        Args:
            restaurant_id: Restaurant ID
            platform: Platform id
            availability_only: Only mappings with availability sync enabled
        """
        query = self.db.query(ProductMapping).filter(
            ProductMapping.restaurant_id == restaurant_id,
            ProductMapping.platform == platform
        )
        if availability_only:
            query = query.filter(ProductMapping.availability_sync_enabled.is_(True))
        return query.order_by(ProductMapping.internal_product_id).all()

    def save(
        self,
        restaurant_id: int,
        platform: str,
        product_id: int,
        external_product_id: str,
        external_product_name: Optional[str] = None
    ) -> ProductMapping:
        """
        Create or update the mapping for a product and mark it synced.

        Returns:
            The persisted ProductMapping
        """
        mapping = self.get(restaurant_id, platform, product_id)
        if mapping is None:
            mapping = ProductMapping(
                restaurant_id=restaurant_id,
                platform=platform,
                internal_product_id=product_id,
            )
            self.db.add(mapping)
        mapping.external_product_id = str(external_product_id)
        if external_product_name:
            mapping.external_product_name = external_product_name
        mapping.sync_status = MappingSyncStatus.SYNCED
        mapping.error_message = None
        mapping.last_synced_at = utcnow()
        self.db.commit()
        self.db.refresh(mapping)
        return mapping

    def mark(self, mapping: ProductMapping, status: str, error: Optional[str] = None) -> ProductMapping:
        mapping.sync_status = status
        mapping.error_message = error
        if status == MappingSyncStatus.SYNCED:
            mapping.last_synced_at = utcnow()
        self.db.commit()
        return mapping


class CategoryMappingRepository:
    """Repository for platform category mappings."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, restaurant_id: int, platform: str, category_id: int) -> Optional[CategoryMapping]:
        return self.db.query(CategoryMapping).filter(
            CategoryMapping.restaurant_id == restaurant_id,
            CategoryMapping.platform == platform,
            CategoryMapping.internal_category_id == category_id
        ).first()

    def save(
        self,
        restaurant_id: int,
        platform: str,
        category_id: int,
        external_category_id: str,
        external_category_name: Optional[str] = None
    ) -> CategoryMapping:
        mapping = self.get(restaurant_id, platform, category_id)
        if mapping is None:
            mapping = CategoryMapping(
                restaurant_id=restaurant_id,
                platform=platform,
                internal_category_id=category_id,
            )
            self.db.add(mapping)
        mapping.external_category_id = str(external_category_id)
        if external_category_name:
            mapping.external_category_name = external_category_name
        mapping.last_synced_at = utcnow()
        self.db.commit()
        self.db.refresh(mapping)
        return mapping
