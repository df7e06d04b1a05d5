from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "sayit",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.tasks.events",
        "app.tasks.notifications",
        "app.tasks.access_codes",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.celery_task_always_eager,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "purge-expired-notifications": {
            "task": "app.tasks.notifications.purge_expired_notifications",
            "schedule": crontab(minute=15),
        },
        "purge-expired-recovery-codes": {
            "task": "app.tasks.access_codes.purge_expired_recovery_codes",
            "schedule": crontab(minute=30),
        },
        "purge-expired-identities": {
            "task": "app.tasks.access_codes.purge_expired_identities",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)
