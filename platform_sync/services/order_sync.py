"""
Order sync orchestrator.

Fans an internal change (status transition, cancellation, availability
toggle) out to every platform the restaurant is live on. Platform calls run
concurrently on a thread pool; persistence happens afterwards on the calling
thread, so the SQLAlchemy session never crosses threads.

A platform failing is recorded on its ExternalOrderRecord/ProductMapping,
its IntegrationConfig and a SyncAttemptLog row. It never reaches the caller
and never prevents the other platforms from being pushed.
"""
import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from platform_sync.constants.order_status import OrderStatus
from platform_sync.constants.sync import FanOutAction, MappingSyncStatus, SyncType
from platform_sync.core.config import settings
from platform_sync.core.exceptions import MappingError, PlatformSyncError, UnsupportedOperationError
from platform_sync.repositories.external_order_repository import ExternalOrderRepository
from platform_sync.repositories.mapping_repository import CategoryMappingRepository, ProductMappingRepository
from platform_sync.repositories.sync_log_repository import SyncLogRepository
from platform_sync.schemas.sync_schemas import FanOutResult, PlatformOutcome
from platform_sync.services import status_mapper
from platform_sync.services.integration_registry import IntegrationRegistry

logger = logging.getLogger(__name__)

# Process-wide cap on concurrent platform calls across all fan-outs
_fanout_slots = threading.BoundedSemaphore(settings.fanout_global_limit)

# One in-flight call per (subject, platform); entries are dropped once unused
_key_locks: Dict[Tuple[str, str], "_KeyLock"] = {}
_key_locks_guard = threading.Lock()


class _KeyLock:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


@contextmanager
def _held(key: Tuple[str, str]) -> Iterator[None]:
    with _key_locks_guard:
        entry = _key_locks.get(key)
        if entry is None:
            entry = _key_locks[key] = _KeyLock()
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _key_locks_guard:
            entry.holders -= 1
            if entry.holders == 0:
                del _key_locks[key]


def _guarded(key: Tuple[str, str], call: Callable[[], Any]) -> Any:
    with _held(key):
        with _fanout_slots:
            return call()


@dataclass
class _Plan:
    """One platform's part of a fan-out."""
    platform: str
    call: Optional[Callable[[], Any]] = None
    on_success: Optional[Callable[[Any], None]] = None
    on_error: Optional[Callable[[PlatformSyncError], None]] = None
    outcome: Optional[PlatformOutcome] = None
    error: Optional[Exception] = None


def _error_type(error: Exception) -> str:
    if isinstance(error, MappingError):
        return "mapping"
    return type(error).__name__


class OrderSyncOrchestrator:
    """Concurrent, isolated propagation of internal changes to every active platform."""

    def __init__(self, db: Session, registry: Optional[IntegrationRegistry] = None):
        self.db = db
        self.registry = registry or IntegrationRegistry(db)
        self.orders = ExternalOrderRepository(db)
        self.mappings = ProductMappingRepository(db)
        self.category_mappings = CategoryMappingRepository(db)
        self.logs = SyncLogRepository(db)

    # ==================== Fan-out core ====================

    @contextmanager
    def _active_adapters(self, restaurant_id: int) -> Iterator[List[Tuple[str, Any]]]:
        adapters = self.registry.active_adapters_for(restaurant_id)
        try:
            yield adapters
        finally:
            for _, adapter in adapters:
                adapter.close()

    def _execute(self, subject: str, plans: List[_Plan]) -> Dict[str, Tuple[Any, Optional[Exception]]]:
        runnable = [p for p in plans if p.call is not None]
        if not runnable:
            return {}
        results: Dict[str, Tuple[Any, Optional[Exception]]] = {}
        with ThreadPoolExecutor(max_workers=len(runnable), thread_name_prefix="platform-fanout") as pool:
            futures = {
                p.platform: pool.submit(_guarded, (subject, p.platform), p.call)
                for p in runnable
            }
            # Join-all: every attempt resolves before anything is persisted
            for platform, future in futures.items():
                try:
                    results[platform] = (future.result(), None)
                except PlatformSyncError as e:
                    results[platform] = (None, e)
                except Exception as e:
                    logger.error(f"Unexpected error pushing to {platform}: {e}", exc_info=True)
                    results[platform] = (None, e)
        return results

    def _run(self, operation: str, restaurant_id: int, subject: str, plans: List[_Plan]) -> FanOutResult:
        results = self._execute(subject, plans)
        outcomes: List[PlatformOutcome] = []

        for plan in plans:
            if plan.outcome is not None:
                outcomes.append(plan.outcome)
                if plan.outcome.action == FanOutAction.ERROR and plan.on_error is not None:
                    self._persist(plan.on_error, plan.platform, plan.error)
                continue

            value, error = results[plan.platform]
            if isinstance(error, UnsupportedOperationError):
                logger.info(f"{operation} {subject} not supported on {plan.platform}: {error.message}")
                outcomes.append(PlatformOutcome(
                    platform=plan.platform, action=FanOutAction.SKIPPED, message=error.message
                ))
            elif error is None:
                logger.info(f"{operation} {subject} pushed to {plan.platform}")
                persisted = self._persist(plan.on_success, plan.platform, value)
                outcomes.append(PlatformOutcome(
                    platform=plan.platform,
                    action=FanOutAction.PUSHED if persisted is None else FanOutAction.ERROR,
                    external_status=value if isinstance(value, str) else None,
                    error=persisted,
                    error_type="persistence" if persisted else None,
                ))
            else:
                logger.warning(f"{operation} {subject} failed on {plan.platform}: {error}")
                self._persist(plan.on_error, plan.platform, error)
                outcomes.append(PlatformOutcome(
                    platform=plan.platform,
                    action=FanOutAction.ERROR,
                    error=str(error),
                    error_type=_error_type(error),
                ))

        result = FanOutResult(operation=operation, restaurant_id=restaurant_id, outcomes=outcomes)
        logger.info(
            f"{operation} {subject}: pushed={result.pushed_platforms} failed={result.failed_platforms}"
        )
        return result

    def _persist(self, callback: Optional[Callable[[Any], None]], platform: str, value: Any) -> Optional[str]:
        if callback is None:
            return None
        try:
            callback(value)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not persist {platform} outcome: {e}", exc_info=True)
            return str(e)
        return None

    def _record_failure(self, restaurant_id: int, platform: str, sync_type: str,
                        reference: Optional[str], error: Exception) -> None:
        self.logs.record(restaurant_id, platform, sync_type, False, reference, str(error))
        # Mapping misses leave integration health untouched
        if isinstance(error, MappingError):
            return
        config = self.registry.config_for(restaurant_id, platform)
        if config is not None:
            self.registry.mark_error(config, str(error))

    def _record_success(self, restaurant_id: int, platform: str, sync_type: str,
                        reference: Optional[str]) -> None:
        self.logs.record(restaurant_id, platform, sync_type, True, reference)
        config = self.registry.config_for(restaurant_id, platform)
        if config is not None:
            self.registry.mark_success(config)

    # ==================== Order operations ====================

    def _order_plans(
        self,
        adapters: List[Tuple[str, Any]],
        order_id: int,
        restaurant_id: int,
        target: OrderStatus,
        sync_type: str,
        make_call: Callable[[Any, str], Callable[[], Any]]
    ) -> List[_Plan]:
        records = {r.platform: r for r in self.orders.list_for_order(order_id)}
        plans = []
        for platform, adapter in adapters:
            record = records.get(platform)
            if record is None:
                plans.append(_Plan(platform, outcome=PlatformOutcome(
                    platform=platform, action=FanOutAction.SKIPPED, message="Order not on this platform"
                )))
                continue

            reference = record.external_order_id
            mapped = status_mapper.to_external(platform, target)
            if not mapped:
                error = MappingError(f"Status '{target.value}' has no {platform} equivalent", platform)
                logger.warning(f"{error}; order {order_id} not pushed")
                plans.append(_Plan(
                    platform,
                    outcome=PlatformOutcome(
                        platform=platform, action=FanOutAction.ERROR,
                        error=str(error), error_type="mapping",
                    ),
                    error=error,
                    on_error=functools.partial(self._record_failure, restaurant_id, platform, sync_type, reference),
                ))
                continue

            if record.external_status == mapped.value:
                plans.append(_Plan(platform, outcome=PlatformOutcome(
                    platform=platform, action=FanOutAction.SKIPPED,
                    external_status=mapped.value, message="Already in target status",
                )))
                continue

            def on_success(token, platform=platform, record=record, reference=reference):
                record.external_status = token
                record.status = target.value
                self.db.commit()
                self._record_success(restaurant_id, platform, sync_type, reference)

            def on_error(error, platform=platform, reference=reference):
                self._record_failure(restaurant_id, platform, sync_type, reference, error)

            plans.append(_Plan(
                platform,
                call=make_call(adapter, reference),
                on_success=on_success,
                on_error=on_error,
            ))
        return plans

    def propagate_status_change(
        self,
        internal_order_id: int,
        new_status: Union[str, OrderStatus],
        details: Optional[Dict[str, Any]] = None
    ) -> FanOutResult:
        """
        Push an internal status transition to every platform carrying the order.

        Args:
            internal_order_id: Internal order ID
            new_status: Target internal status
            details: Optional platform hints (estimated_delivery_time, notes, reason)

        Returns:
            FanOutResult with one outcome per active platform; never raises
        """
        operation = SyncType.ORDER_STATUS
        try:
            target = OrderStatus(new_status)
        except ValueError:
            logger.error(f"Refusing to propagate unknown status {new_status!r} for order {internal_order_id}")
            return FanOutResult(operation=operation)

        order = self.orders.get_order(internal_order_id)
        if order is None:
            logger.warning(f"Order {internal_order_id} not found; nothing to propagate")
            return FanOutResult(operation=operation)

        with self._active_adapters(order.restaurant_id) as adapters:
            plans = self._order_plans(
                adapters, order.id, order.restaurant_id, target, operation,
                lambda adapter, ref: functools.partial(adapter.push_order_status, ref, target, details),
            )
            return self._run(operation, order.restaurant_id, f"order {order.id}", plans)

    def cancel_order(self, internal_order_id: int, reason: str) -> FanOutResult:
        """Cancel an order on every platform carrying it; never raises."""
        operation = SyncType.CANCEL
        order = self.orders.get_order(internal_order_id)
        if order is None:
            logger.warning(f"Order {internal_order_id} not found; nothing to cancel")
            return FanOutResult(operation=operation)

        with self._active_adapters(order.restaurant_id) as adapters:
            plans = self._order_plans(
                adapters, order.id, order.restaurant_id, OrderStatus.CANCELLED, operation,
                lambda adapter, ref: functools.partial(adapter.cancel_order, ref, reason),
            )
            return self._run(operation, order.restaurant_id, f"order {order.id}", plans)

    # ==================== Menu operations ====================

    def update_menu_item_availability(self, restaurant_id: int, product_id: int, available: bool) -> FanOutResult:
        """
        Toggle a product's availability on every platform it is mapped on.

        Mappings with availability sync disabled are skipped.
        """
        operation = SyncType.AVAILABILITY
        with self._active_adapters(restaurant_id) as adapters:
            plans = []
            for platform, adapter in adapters:
                mapping = self.mappings.get(restaurant_id, platform, product_id)
                if mapping is None:
                    plans.append(_Plan(platform, outcome=PlatformOutcome(
                        platform=platform, action=FanOutAction.SKIPPED, message="Product not mapped"
                    )))
                    continue
                if not mapping.availability_sync_enabled:
                    plans.append(_Plan(platform, outcome=PlatformOutcome(
                        platform=platform, action=FanOutAction.SKIPPED, message="Availability sync disabled"
                    )))
                    continue

                reference = mapping.external_product_id

                def on_success(_, platform=platform, mapping=mapping, reference=reference):
                    self.mappings.mark(mapping, MappingSyncStatus.SYNCED)
                    self._record_success(restaurant_id, platform, operation, reference)

                def on_error(error, platform=platform, mapping=mapping, reference=reference):
                    self.mappings.mark(mapping, MappingSyncStatus.ERROR, str(error))
                    self._record_failure(restaurant_id, platform, operation, reference, error)

                plans.append(_Plan(
                    platform,
                    call=functools.partial(adapter.set_product_availability, reference, available),
                    on_success=on_success,
                    on_error=on_error,
                ))
            return self._run(operation, restaurant_id, f"product {product_id}", plans)

    def update_category_availability(self, restaurant_id: int, category_id: int, available: bool) -> FanOutResult:
        """
        Open or close a whole menu category on every platform it is mapped on.

        Platforms without category-level availability report ``skipped``.
        """
        operation = SyncType.AVAILABILITY
        with self._active_adapters(restaurant_id) as adapters:
            plans = []
            for platform, adapter in adapters:
                mapping = self.category_mappings.get(restaurant_id, platform, category_id)
                if mapping is None:
                    plans.append(_Plan(platform, outcome=PlatformOutcome(
                        platform=platform, action=FanOutAction.SKIPPED, message="Category not mapped"
                    )))
                    continue

                reference = mapping.external_category_id

                def on_success(_, platform=platform, reference=reference):
                    self._record_success(restaurant_id, platform, operation, reference)

                def on_error(error, platform=platform, reference=reference):
                    self._record_failure(restaurant_id, platform, operation, reference, error)

                plans.append(_Plan(
                    platform,
                    call=functools.partial(adapter.set_category_availability, reference, available),
                    on_success=on_success,
                    on_error=on_error,
                ))
            return self._run(operation, restaurant_id, f"category {category_id}", plans)

    def test_all_integrations(self, restaurant_id: int) -> Dict[str, bool]:
        """Check connectivity of every active integration concurrently."""
        with self._active_adapters(restaurant_id) as adapters:
            plans = [_Plan(platform, call=adapter.test_connection) for platform, adapter in adapters]
            results = self._execute(f"restaurant {restaurant_id}", plans)
        status = {}
        for platform, (_, error) in results.items():
            status[platform] = error is None
            if error is not None:
                logger.warning(f"Connection test for {platform} (restaurant {restaurant_id}) failed: {error}")
        return status
