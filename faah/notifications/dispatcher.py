from __future__ import annotations

import logging
from typing import Hashable, Mapping

from faah.config.settings import SettingsProvider
from faah.detection.classifier import classify
from faah.detection.patterns import build_pattern_sets
from faah.detection.sanitizer import sanitize

from .audio import PlaybackSink
from .cooldown import CooldownGate
from .desktop import DesktopNotifier
from .history import NotificationHistory
from .models import TEXT_TRIGGER, Category, NotificationEvent, Trigger

log = logging.getLogger(__name__)


class Dispatcher:
    """Turn flushed text and discrete events into at most one notification each."""

    def __init__(
        self,
        settings_provider: SettingsProvider,
        sink: PlaybackSink,
        gate: CooldownGate | None = None,
        desktop: DesktopNotifier | None = None,
        history: NotificationHistory | None = None,
    ) -> None:
        self._settings = settings_provider
        self._sink = sink
        self._gate = gate or CooldownGate(settings_provider)
        self._desktop = desktop
        self._history = history or NotificationHistory()

    def get_history(self) -> NotificationHistory:
        return self._history

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle_flush(self, stream_key: Hashable, text: str) -> NotificationEvent | None:
        settings = self._settings()
        if not settings.enabled:
            return None
        clean = sanitize(text)
        match = classify(clean, build_pattern_sets(settings))
        if match is None:
            return None
        log.debug(
            "Stream %r matched %s via %r: %r",
            stream_key, match.category.value, match.pattern, match.matched_text,
        )
        return self._dispatch(
            match.category,
            TEXT_TRIGGER[match.category],
            str(stream_key),
            match.matched_text,
        )

    def handle_exit(self, exit_code: int | None, source: str = "task") -> NotificationEvent | None:
        if exit_code is None or exit_code == 0:
            return None
        return self._dispatch(
            Category.ERROR,
            Trigger.TASK_FAILURE,
            source,
            f"exit code {exit_code}",
        )

    def handle_diagnostics(self, batch: Mapping[str, bool]) -> NotificationEvent | None:
        """*batch* maps document identity to whether it has an error-severity item."""
        if not self._settings().trigger_enabled(Trigger.DIAGNOSTIC_ERROR):
            return None
        for document, has_error in batch.items():
            if has_error:
                # One notification per batch is enough.
                return self._dispatch(
                    Category.ERROR,
                    Trigger.DIAGNOSTIC_ERROR,
                    document,
                    "diagnostic error",
                )
        return None

    def test_play(self, category: Category) -> None:
        """Play *category* right away, ignoring cooldowns and enable flags."""
        self._play(category, self._settings().volume)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dispatch(
        self,
        category: Category,
        trigger: Trigger,
        source: str,
        matched_text: str = "",
    ) -> NotificationEvent | None:
        if not self._gate.try_dispatch(category, trigger=trigger):
            return None

        event = NotificationEvent(
            category=category,
            trigger=trigger,
            source=source,
            volume=self._settings().volume,
            matched_text=matched_text,
        )
        self._history.add(event)
        log.info("Notifying %s from %s (%s)", category.value, source, trigger.value)

        self._play(category, event.volume)
        if self._desktop is not None:
            try:
                self._desktop.notify(event)
            except Exception:
                log.warning("Desktop notification failed", exc_info=True)
        return event

    def _play(self, category: Category, volume: int) -> None:
        try:
            self._sink.play(category, volume)
        except Exception:
            log.warning("Playback failed for %s", category.value, exc_info=True)
