"""Celery task definitions package."""

from storefront.tasks import events  # noqa: F401

__all__ = ["events"]
