from __future__ import annotations

from typing import Any

from storefront.core.celery_app import PAYMENT_REQUIRED_TASK, celery_app


def emit_payment_required(payload: dict[str, Any]) -> None:
    """Publish the payment_required event; routing puts it on the payment queue."""
    task = celery_app.tasks.get(PAYMENT_REQUIRED_TASK)
    if task is None:
        raise RuntimeError("Payment event task not registered")
    task.apply_async((payload,), ignore_result=True)
