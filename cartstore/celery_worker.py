# cartstore/celery_worker.py
from celery import Celery

from cartstore.utils.settings import (
    CART_CLEANUP_INTERVAL_SECONDS,
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
)

celery_app = Celery(
    "cartstore",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# explicit import so the worker registers the task
celery_app.conf.imports = ("cartstore.tasks.expire",)

# beat: one sweep per interval, a failed run does not stop the next one
celery_app.conf.beat_schedule = {
    "expire-carts-hourly": {
        "task": "cartstore.tasks.expire.expire_carts_task",
        "schedule": CART_CLEANUP_INTERVAL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
