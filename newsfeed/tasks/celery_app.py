from datetime import timedelta

from celery import Celery

from newsfeed.core.config import Settings, get_settings


def build_beat_schedule(settings: Settings) -> dict:
    return {
        "refresh-feed": {
            "task": "newsfeed.tasks.jobs.refresh_feed",
            "schedule": timedelta(minutes=settings.refresh_schedule_minutes),
        },
    }


settings = get_settings()
celery_app = Celery(
    "newsfeed",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["newsfeed.tasks.jobs"],
)
celery_app.conf.task_always_eager = settings.celery_eager_mode
celery_app.conf.task_eager_propagates = True

celery_app.conf.task_routes = {
    "newsfeed.tasks.jobs.refresh_feed": {"queue": "refresh"},
}
celery_app.conf.beat_schedule = build_beat_schedule(settings)
