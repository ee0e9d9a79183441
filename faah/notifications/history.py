from __future__ import annotations

from collections import deque

from .models import Category, NotificationEvent


class NotificationHistory:
    """Events dispatched during this process, newest last."""

    def __init__(self, max_size: int = 200) -> None:
        self._events: deque[NotificationEvent] = deque(maxlen=max_size)

    def add(self, event: NotificationEvent) -> None:
        self._events.append(event)

    def get_recent(self, n: int = 50) -> list[NotificationEvent]:
        if n <= 0:
            return []
        return list(self._events)[-n:]

    def count(self, category: Category) -> int:
        return sum(1 for e in self._events if e.category is category)

    def summary_lines(self, recent: int = 10) -> list[str]:
        """Per-category totals followed by the most recent events."""
        if not self._events:
            return ["no notifications"]
        totals = ", ".join(
            f"{self.count(c)} {c.value}" for c in Category if self.count(c)
        )
        lines = [f"{len(self._events)} notification(s): {totals}"]
        for e in self.get_recent(recent):
            line = f"{e.timestamp:%H:%M:%S} {e.category.value} from {e.source}"
            if e.matched_text:
                line += f": {e.matched_text.strip()}"
            lines.append(line)
        return lines

    def __len__(self) -> int:
        return len(self._events)
