"""
Catalog repository.

Read access to the internal menu; the catalog itself is owned elsewhere.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from platform_sync.models.catalog_models import Category, Product, ProductMapping


class CatalogRepository:
    """Repository for internal categories and products."""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.db.query(Product).filter(Product.id == product_id).first()

    def list_categories(self, restaurant_id: int, since: Optional[datetime] = None) -> List[Category]:
        query = self.db.query(Category).filter(
            Category.restaurant_id == restaurant_id,
            Category.is_active.is_(True)
        )
        if since is not None:
            query = query.filter(Category.updated_at > since)
        return query.order_by(Category.sort_order, Category.id).all()

    def list_products(self, restaurant_id: int, since: Optional[datetime] = None) -> List[Product]:
        """
        Get the products of a restaurant.

        Args:
            restaurant_id: Restaurant ID
            since: Only products modified after this timestamp (incremental sync)
        """
        query = self.db.query(Product).filter(Product.restaurant_id == restaurant_id)
        if since is not None:
            query = query.filter(Product.updated_at > since)
        return query.order_by(Product.id).all()

    def match_product(self, restaurant_id: int, external_product_id: Optional[str], name: str,
                      platform: str) -> Optional[int]:
        """
        Resolve an inbound order line to an internal product id.

        A product mapping wins; otherwise an exact (case-insensitive) name match
        within the restaurant is used.
        """
        if external_product_id:
            mapping = self.db.query(ProductMapping).filter(
                ProductMapping.restaurant_id == restaurant_id,
                ProductMapping.platform == platform,
                ProductMapping.external_product_id == str(external_product_id)
            ).first()
            if mapping:
                return mapping.internal_product_id
        if not name:
            return None
        wanted = name.strip().casefold()
        for product in self.db.query(Product).filter(Product.restaurant_id == restaurant_id).all():
            if product.name.strip().casefold() == wanted:
                return product.id
        return None
