"""
Celery tasks package initialization.
"""
from platform_sync.tasks.sync_tasks import *
from platform_sync.tasks.scheduled_tasks import *
