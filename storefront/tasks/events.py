from __future__ import annotations

from storefront.core.celery_app import PAYMENT_REQUIRED_TASK, celery_app
from storefront.core.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name=PAYMENT_REQUIRED_TASK, ignore_result=True)
def handle_payment_required(payload: dict) -> None:
    """Hand a freshly finalized order to the payment adapters."""
    logger.info("payment_required event", extra={"event": "payment_required", **payload})
