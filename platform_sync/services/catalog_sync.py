"""
Catalog sync service.

Pushes the internal menu (categories, then products) to one platform and
keeps the id mappings current. The loop is sequential; one item failing is
recorded and the loop moves on. Mapped items a platform cannot update are
counted as skipped and their mapping is left pending.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from platform_sync.constants.sync import MappingSyncStatus, SyncRunStatus, SyncType
from platform_sync.core.exceptions import PlatformSyncError, UnsupportedOperationError
from platform_sync.models.catalog_models import Product, ProductMapping
from platform_sync.repositories.catalog_repository import CatalogRepository
from platform_sync.repositories.mapping_repository import CategoryMappingRepository, ProductMappingRepository
from platform_sync.repositories.sync_log_repository import SyncLogRepository
from platform_sync.schemas.sync_schemas import SyncOptions, SyncResult
from platform_sync.services.integration_registry import IntegrationRegistry
from platform_sync.services.platforms import ADAPTER_CLASSES

logger = logging.getLogger(__name__)


def _needs_push(product: Product, mapping: Optional[ProductMapping], full: bool) -> bool:
    if full or mapping is None:
        return True
    if mapping.sync_status == MappingSyncStatus.ERROR:
        return True
    if mapping.last_synced_at is None or product.updated_at is None:
        return True
    return product.updated_at > mapping.last_synced_at


class CatalogSyncService:
    """Menu push and availability sync for a single restaurant/platform pair."""

    def __init__(self, db: Session, registry: Optional[IntegrationRegistry] = None):
        self.db = db
        self.registry = registry or IntegrationRegistry(db)
        self.catalog = CatalogRepository(db)
        self.products = ProductMappingRepository(db)
        self.categories = CategoryMappingRepository(db)
        self.logs = SyncLogRepository(db)

    def _fail_fast(self, restaurant_id: int, platform: str, sync_type: str, message: str) -> SyncResult:
        logger.warning(f"Catalog sync for restaurant {restaurant_id} on {platform} not started: {message}")
        log = self.logs.open(restaurant_id, platform, sync_type)
        self.logs.finalize(log, errors=[message], status=SyncRunStatus.FAILED)
        return SyncResult(platform=platform, failed=0, errors=[message], log_id=log.id)

    def _product_failed(
        self,
        counters: Dict[str, int],
        errors: List[str],
        platform: str,
        product: Product,
        mapping: Optional[ProductMapping],
        message: str
    ) -> None:
        counters["failed_products"] += 1
        errors.append(f"Product {product.id} ({product.name}): {message}")
        if mapping is not None:
            self.products.mark(mapping, MappingSyncStatus.ERROR, message)

    def sync_menu(
        self,
        restaurant_id: int,
        platform: str,
        options: Optional[SyncOptions] = None
    ) -> SyncResult:
        """
        Push categories and products of a restaurant to a platform.

        Args:
            restaurant_id: Restaurant ID
            platform: Platform id
            options: full or incremental run, and which entity kinds to push

        Returns:
            SyncResult with counts, accumulated errors and the log id
        """
        options = options or SyncOptions()
        full = options.sync_type == SyncType.FULL

        if platform not in ADAPTER_CLASSES:
            return self._fail_fast(restaurant_id, platform, options.sync_type, f"Unknown platform: {platform}")
        config = self.registry.config_for(restaurant_id, platform)
        if config is None:
            return self._fail_fast(
                restaurant_id, platform, options.sync_type, f"No active {platform} integration"
            )
        adapter = self.registry.adapter_for(restaurant_id, platform)
        if adapter is None:
            return self._fail_fast(
                restaurant_id, platform, options.sync_type, f"{platform} integration is not fully configured"
            )

        log = self.logs.open(restaurant_id, platform, options.sync_type)
        self.registry.mark_syncing(config)
        counters: Dict[str, int] = {
            "synced_categories": 0,
            "failed_categories": 0,
            "synced_products": 0,
            "failed_products": 0,
            "skipped_items": 0,
        }
        errors: List[str] = []
        category_ids: Dict[int, str] = {}

        logger.info(
            f"Starting {options.sync_type} menu sync for restaurant {restaurant_id} on {platform}"
        )
        try:
            for category in self.catalog.list_categories(restaurant_id):
                mapping = self.categories.get(restaurant_id, platform, category.id)
                if mapping is not None:
                    category_ids[category.id] = mapping.external_category_id
                if not options.categories or (mapping is not None and not full):
                    continue
                try:
                    external_id = adapter.push_category(
                        category, mapping.external_category_id if mapping else None
                    )
                except UnsupportedOperationError as e:
                    if mapping is None:
                        logger.debug(f"{platform} does not accept category pushes; skipping categories")
                        break
                    counters["skipped_items"] += 1
                    logger.info(f"Category {category.id} left as is on {platform}: {e.message}")
                    continue
                except PlatformSyncError as e:
                    counters["failed_categories"] += 1
                    errors.append(f"Category {category.id} ({category.name}): {e.message}")
                    logger.warning(f"Category {category.id} failed on {platform}: {e}")
                    continue
                except Exception as e:
                    counters["failed_categories"] += 1
                    errors.append(f"Category {category.id} ({category.name}): {e}")
                    logger.error(f"Unexpected error pushing category {category.id} to {platform}: {e}", exc_info=True)
                    continue
                self.categories.save(restaurant_id, platform, category.id, external_id, category.name)
                category_ids[category.id] = external_id
                counters["synced_categories"] += 1

            if options.products:
                for product in self.catalog.list_products(restaurant_id):
                    mapping = self.products.get(restaurant_id, platform, product.id)
                    if not _needs_push(product, mapping, full):
                        continue
                    include_price = mapping.price_sync_enabled if mapping is not None else True
                    try:
                        external_id, external_name = adapter.push_product(
                            product,
                            external_id=mapping.external_product_id if mapping else None,
                            include_price=include_price,
                            external_category_id=category_ids.get(product.category_id),
                        )
                    except UnsupportedOperationError as e:
                        # Nothing was sent: the mapping stays pending and is not stamped as synced
                        counters["skipped_items"] += 1
                        logger.info(f"Product {product.id} not updated on {platform}: {e.message}")
                        if mapping is not None:
                            self.products.mark(mapping, MappingSyncStatus.PENDING, e.message)
                        continue
                    except PlatformSyncError as e:
                        self._product_failed(counters, errors, platform, product, mapping, e.message)
                        logger.warning(f"Product {product.id} failed on {platform}: {e}")
                        continue
                    except Exception as e:
                        self._product_failed(counters, errors, platform, product, mapping, str(e))
                        logger.error(f"Unexpected error pushing product {product.id} to {platform}: {e}", exc_info=True)
                        continue
                    self.products.save(restaurant_id, platform, product.id, external_id, external_name)
                    counters["synced_products"] += 1
        except Exception as e:
            logger.error(f"Menu sync for restaurant {restaurant_id} on {platform} aborted: {e}", exc_info=True)
            errors.append(f"Sync aborted: {e}")
            raise
        finally:
            adapter.close()
            log = self.logs.finalize(log, counters, errors)
            if log.status == SyncRunStatus.COMPLETED:
                self.registry.mark_success(config)
            else:
                self.registry.mark_error(config, errors[0] if len(errors) == 1 else f"{len(errors)} items failed")

        synced = counters["synced_categories"] + counters["synced_products"]
        failed = counters["failed_categories"] + counters["failed_products"]
        logger.info(
            f"Menu sync for restaurant {restaurant_id} on {platform} finished: "
            f"{synced} synced, {failed} failed, {counters['skipped_items']} left unchanged"
        )
        return SyncResult(
            platform=platform,
            synced=synced,
            failed=failed,
            skipped=counters["skipped_items"],
            errors=errors,
            log_id=log.id,
        )

    def sync_availability(self, restaurant_id: int, platform: str) -> SyncResult:
        """
        Push the current availability of every mapped product.

        Only mappings with availability sync enabled are considered; each is
        marked synced or error.
        """
        if platform not in ADAPTER_CLASSES:
            return self._fail_fast(restaurant_id, platform, SyncType.AVAILABILITY, f"Unknown platform: {platform}")
        config = self.registry.config_for(restaurant_id, platform)
        adapter = self.registry.adapter_for(restaurant_id, platform) if config else None
        if adapter is None:
            return self._fail_fast(
                restaurant_id, platform, SyncType.AVAILABILITY, f"No usable {platform} integration"
            )

        log = self.logs.open(restaurant_id, platform, SyncType.AVAILABILITY)
        counters = {"synced_items": 0, "failed_items": 0}
        errors: List[str] = []
        try:
            for mapping in self.products.list_for_restaurant(restaurant_id, platform, availability_only=True):
                product = mapping.product
                if product is None:
                    continue
                try:
                    adapter.set_product_availability(mapping.external_product_id, bool(product.is_available))
                except PlatformSyncError as e:
                    counters["failed_items"] += 1
                    errors.append(f"Product {product.id} ({product.name}): {e.message}")
                    self.products.mark(mapping, MappingSyncStatus.ERROR, e.message)
                    continue
                except Exception as e:
                    counters["failed_items"] += 1
                    errors.append(f"Product {product.id} ({product.name}): {e}")
                    logger.error(
                        f"Unexpected error pushing availability of product {product.id} to {platform}: {e}",
                        exc_info=True
                    )
                    self.products.mark(mapping, MappingSyncStatus.ERROR, str(e))
                    continue
                self.products.mark(mapping, MappingSyncStatus.SYNCED)
                counters["synced_items"] += 1
        finally:
            adapter.close()
            log = self.logs.finalize(log, counters, errors)
            if errors:
                self.registry.mark_error(config, errors[0] if len(errors) == 1 else f"{len(errors)} items failed")
            else:
                self.registry.mark_success(config)

        logger.info(
            f"Availability sync for restaurant {restaurant_id} on {platform}: "
            f"{counters['synced_items']} synced, {counters['failed_items']} failed"
        )
        return SyncResult(
            platform=platform,
            synced=counters["synced_items"],
            failed=counters["failed_items"],
            errors=errors,
            log_id=log.id,
        )
