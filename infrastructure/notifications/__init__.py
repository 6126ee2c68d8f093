"""Notifier implementations."""
from .celery_notifier import CeleryEmailNotifier

__all__ = ["CeleryEmailNotifier"]
