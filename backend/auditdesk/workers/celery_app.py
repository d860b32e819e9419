"""
Celery application configuration
"""
from celery import Celery
from kombu import Queue

from auditdesk.core.config import settings

celery_app = Celery(
    "auditdesk",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["auditdesk.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.SCHEDULER_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.MAINTENANCE_TASK_TIMEOUT_SEC,
    task_soft_time_limit=settings.MAINTENANCE_TASK_TIMEOUT_SEC - 60,
    worker_prefetch_multiplier=1,  # Batch jobs are long-running
    task_acks_late=True,
)

# Batch jobs touch every company, so run the maintenance queue with --concurrency=1:
#   celery -A auditdesk.workers.celery_app worker -Q maintenance --concurrency=1
celery_app.conf.task_queues = (
    Queue("celery"),
    Queue("maintenance"),
)

celery_app.conf.task_default_queue = "celery"

celery_app.conf.task_routes = {
    "auditdesk.workers.tasks.*": {"queue": "maintenance"},
}
