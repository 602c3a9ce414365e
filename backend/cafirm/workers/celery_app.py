"""
Celery configuration.

Worker and beat schedule for background jobs.
"""

from celery import Celery
from celery.schedules import crontab

from cafirm.core.config import settings

celery_app = Celery(
    "cafirm",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "cafirm.workers.invoice_tasks",
        "cafirm.workers.notification_tasks",
        "cafirm.workers.maintenance_tasks",
    ],
)

celery_app.conf.update(
    # Timezone
    timezone="Asia/Kolkata",
    enable_utc=True,

    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Tasks
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes max
    task_soft_time_limit=25 * 60,

    # Retries
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Concurrency
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Results
    result_expires=60 * 60 * 24,  # 24 hours

    beat_schedule={
        # Overdue invoices every day at 00:30
        "mark-overdue-invoices": {
            "task": "cafirm.workers.invoice_tasks.mark_overdue_invoices_task",
            "schedule": crontab(hour=0, minute=30),
        },
        # Due date reminders every day at 09:00
        "send-due-service-reminders": {
            "task": "cafirm.workers.notification_tasks.send_due_service_reminders_task",
            "schedule": crontab(hour=9, minute=0),
        },
        # Orphaned uploads every 6 hours
        "cleanup-orphaned-uploads": {
            "task": "cafirm.workers.maintenance_tasks.cleanup_orphaned_uploads_task",
            "schedule": 6 * 60 * 60.0,
        },
    },
)

# Local worker: celery -A cafirm.workers.celery_app worker --loglevel=info
# Beat: celery -A cafirm.workers.celery_app beat --loglevel=info
