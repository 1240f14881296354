from celery import Celery

from fluxqc.config import settings

celery_app = Celery(
    "fluxqc",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["fluxqc.tasks.imputation"],
)

celery_app.conf.update(
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)
