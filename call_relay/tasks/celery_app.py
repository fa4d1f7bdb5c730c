"""
Celery configuration for periodic maintenance
"""
from celery import Celery

from call_relay.core.config import settings

celery_app = Celery(
    "call_relay",
    broker=settings.broker_url,
    backend=settings.broker_url,
    include=["call_relay.tasks.maintenance_tasks"]
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task routing
    task_routes={
        "call_relay.tasks.maintenance_tasks.sweep_stale_active_calls": {"queue": "maintenance"},
    },

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minute hard limit
    task_soft_time_limit=240,

    result_expires=3600,
    broker_connection_retry_on_startup=True,
)

celery_app.conf.beat_schedule = {
    "sweep-stale-active-calls": {
        "task": "call_relay.tasks.maintenance_tasks.sweep_stale_active_calls",
        "schedule": float(settings.active_call_sweep_interval_seconds),
        "options": {"queue": "maintenance"},
    },
}
