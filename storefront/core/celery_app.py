"""Broker wiring for domain events.

Eager mode (the default) runs handlers inline, which is what tests and a
single-process deployment use.
"""

from __future__ import annotations

from celery import Celery
from kombu import Queue

from storefront.core.config import settings

PAYMENT_REQUIRED_TASK = "events.payment_required"

celery_app = Celery(
    "storefront",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)
celery_app.conf.update(
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
    task_default_queue=settings.CELERY_TASK_DEFAULT_QUEUE,
    task_queues=[Queue(name) for name in (settings.CELERY_TASK_DEFAULT_QUEUE, settings.PAYMENT_EVENTS_QUEUE)],
    task_routes={PAYMENT_REQUIRED_TASK: {"queue": settings.PAYMENT_EVENTS_QUEUE}},
    broker_connection_retry_on_startup=True,
)
