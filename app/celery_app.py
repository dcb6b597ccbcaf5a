"""Celery worker for generation dispatches and the stale-generation sweep."""

from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

# One provider request plus the longest Flux result polling
GENERATION_SOFT_TIME_LIMIT = int(
    settings.provider_request_timeout + settings.flux_max_poll_attempts * settings.flux_poll_interval
)

celery_app = Celery(
    "imagechat",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.generation_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_soft_time_limit=GENERATION_SOFT_TIME_LIMIT,
    task_time_limit=GENERATION_SOFT_TIME_LIMIT + 60,
    # Redeliver generations whose worker died mid-run
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    task_routes={"app.tasks.generation_tasks.*": {"queue": "generations"}},
    beat_schedule={
        "expire-stale-generations": {
            "task": "app.tasks.generation_tasks.expire_stale_generations_task",
            "schedule": crontab(minute="*/5"),
            "options": {"expires": 240},
        },
    },
)
