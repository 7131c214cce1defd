"""
Celery application configuration for the restaurant platform sync service.
"""
import logging

from celery import Celery

from platform_sync.core.config import settings

logging.basicConfig(level=settings.log_level)

celery_app = Celery(
    "restaurant_platform_sync",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "platform_sync.tasks.sync_tasks",
        "platform_sync.tasks.scheduled_tasks",
    ]
)

celery_app.conf.update(
    # Serialization
    task_serializer=settings.celery_task_serializer,
    result_serializer=settings.celery_result_serializer,
    accept_content=settings.celery_accept_content,

    # Timezone
    timezone=settings.celery_timezone,
    enable_utc=settings.celery_enable_utc,

    # Task execution
    task_track_started=True,
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,

    # Platform calls are I/O bound
    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=100,

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    result_expires=7200,

    task_routes={
        'platform_sync.tasks.sync_tasks.propagate_order_status': {
            'queue': 'order_queue',
            'priority': 9
        },
        'platform_sync.tasks.sync_tasks.cancel_platform_order': {
            'queue': 'order_queue',
            'priority': 9
        },
        'platform_sync.tasks.sync_tasks.pull_platform_orders': {
            'queue': 'order_queue',
            'priority': 7
        },
        'platform_sync.tasks.sync_tasks.update_menu_item_availability': {
            'queue': 'menu_queue',
            'priority': 8
        },
        'platform_sync.tasks.sync_tasks.update_category_availability': {
            'queue': 'menu_queue',
            'priority': 8
        },
        'platform_sync.tasks.sync_tasks.sync_platform_availability': {
            'queue': 'menu_queue',
            'priority': 6
        },
        'platform_sync.tasks.sync_tasks.sync_platform_menu': {
            'queue': 'menu_queue',
            'priority': 4
        },
        'platform_sync.tasks.scheduled_tasks.*': {
            'queue': 'scheduler_queue',
            'priority': 7
        },
    },

    broker_connection_retry_on_startup=True,
    broker_connection_retry=True,
    broker_connection_max_retries=10,
    broker_pool_limit=10,
)

celery_app.conf.beat_schedule = {
    'menu-sync-all-integrations': {
        'task': 'platform_sync.tasks.scheduled_tasks.schedule_menu_sync',
        'schedule': settings.menu_sync_interval_seconds,
    },
    'order-pull-all-integrations': {
        'task': 'platform_sync.tasks.scheduled_tasks.schedule_order_pull',
        'schedule': settings.order_pull_interval_seconds,
    },
}

if __name__ == '__main__':
    celery_app.start()
