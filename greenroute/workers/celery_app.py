from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_ready

from greenroute.config import settings


def cron_schedule(expression: str) -> crontab:
    """Build a Celery crontab from a five-field "m h dom mon dow" expression."""
    minute, hour, day_of_month, month_of_year, day_of_week = expression.split()
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


celery_app = Celery(
    "greenroute",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["greenroute.workers.tasks"],
)

celery_app.conf.update(
    # Serialisation
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Cron fields are interpreted in UTC
    timezone="UTC",
    enable_utc=True,
    # Reliability
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Refresh results carry no payload; keep them for a day for inspection
    result_expires=86400,
)

if settings.refresh_enabled:
    celery_app.conf.beat_schedule = {
        "forecast-refresh": {
            "task": "greenroute.refresh_forecasts",
            "schedule": cron_schedule(settings.forecast_refresh_cron),
        },
    }


@worker_ready.connect
def refresh_on_startup(sender=None, **kwargs) -> None:
    """Fire one refresh as soon as a worker comes up, in addition to the schedule."""
    if settings.refresh_enabled:
        celery_app.send_task("greenroute.refresh_forecasts")
