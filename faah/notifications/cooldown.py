from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

from faah.config.settings import SettingsProvider

from .models import TEXT_TRIGGER, Category, Trigger

log = logging.getLogger(__name__)

NEVER = -math.inf


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class CooldownGate:
    """Per-category rate limit for notifications.

    A suppressed attempt never moves the window; only an allowed one does.
    """

    def __init__(
        self,
        settings_provider: SettingsProvider,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self._settings = settings_provider
        self._clock = clock
        self._last_dispatch_at: dict[Category, float] = {c: NEVER for c in Category}
        # Check-then-set must be atomic if sources deliver from threads.
        self._lock = threading.Lock()

    def try_dispatch(
        self,
        category: Category,
        now: float | None = None,
        trigger: Trigger | None = None,
    ) -> bool:
        settings = self._settings()
        trigger = trigger or TEXT_TRIGGER[category]
        if not settings.trigger_enabled(trigger):
            log.debug("%s disabled, not dispatching %s", trigger.value, category.value)
            return False

        cooldown = settings.cooldown_for(category)
        with self._lock:
            if now is None:
                now = self._clock()
            last = self._last_dispatch_at[category]
            if now - last < cooldown:
                log.debug(
                    "Suppressed %s (%.0fms since last, cooldown %.0fms)",
                    category.value, now - last, cooldown,
                )
                return False
            self._last_dispatch_at[category] = now
        return True

    def reset(self, category: Category | None = None) -> None:
        with self._lock:
            if category is None:
                for c in Category:
                    self._last_dispatch_at[c] = NEVER
            else:
                self._last_dispatch_at[category] = NEVER
