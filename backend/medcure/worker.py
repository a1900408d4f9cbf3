"""
Celery Worker Configuration.

Runs the nightly-style forecast refresh off the request path:
forecasting every product is CPU heavy on a large catalogue.
"""

import logging

from celery import Celery
from medcure.config import settings

logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)

celery_app = Celery(
    "medcure_worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

celery_app.autodiscover_tasks(['medcure'])
