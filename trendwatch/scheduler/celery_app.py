from celery import Celery
from celery.schedules import crontab

from trendwatch.core.config import settings

app = Celery(
    "trendwatch",
    include=[
        "trendwatch.tasks.market_data",
        "trendwatch.tasks.indicators",
    ],
)
app.conf.broker_url = settings.CELERY_BROKER_URL
app.conf.result_backend = settings.CELERY_RESULT_BACKEND
app.conf.timezone = settings.CELERY_TIMEZONE
app.conf.enable_utc = False

app.conf.beat_schedule = {
    "ingest-market-data": {
        "task": "trendwatch.tasks.market_data.ingest_market_data",
        "schedule": crontab(
            day_of_week="mon-fri",
            hour=settings.MARKET_CLOSE_HOUR,
            minute=settings.MARKET_CLOSE_MINUTE,
        ),
    },
}
