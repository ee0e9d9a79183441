from __future__ import annotations

from .models import CATEGORY_PRIORITY, Category, NotificationEvent, Trigger

__all__ = [
    "CATEGORY_PRIORITY",
    "Category",
    "NotificationEvent",
    "Trigger",
]
