from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Category(Enum):
    PERMISSION = "permission"
    REPLY = "reply"
    ERROR = "error"


# Evaluation order for text classification; earlier categories win.
CATEGORY_PRIORITY: tuple[Category, ...] = (
    Category.PERMISSION,
    Category.REPLY,
    Category.ERROR,
)


class Trigger(Enum):
    """Detection source.  Each one has its own enable flag."""

    PERMISSION_PROMPT = "permission_prompt"
    REPLY = "reply"
    TERMINAL_ERROR = "terminal_errors"
    TASK_FAILURE = "task_failures"
    DIAGNOSTIC_ERROR = "diagnostic_errors"

    @property
    def category(self) -> Category:
        return TRIGGER_CATEGORY[self]


TRIGGER_CATEGORY: dict[Trigger, Category] = {
    Trigger.PERMISSION_PROMPT: Category.PERMISSION,
    Trigger.REPLY: Category.REPLY,
    Trigger.TERMINAL_ERROR: Category.ERROR,
    Trigger.TASK_FAILURE: Category.ERROR,
    Trigger.DIAGNOSTIC_ERROR: Category.ERROR,
}

# Trigger used when a category is resolved from terminal text.
TEXT_TRIGGER: dict[Category, Trigger] = {
    Category.PERMISSION: Trigger.PERMISSION_PROMPT,
    Category.REPLY: Trigger.REPLY,
    Category.ERROR: Trigger.TERMINAL_ERROR,
}


@dataclass
class NotificationEvent:
    category: Category
    trigger: Trigger
    source: str
    volume: int
    timestamp: datetime = field(default_factory=datetime.now)
    matched_text: str = ""
