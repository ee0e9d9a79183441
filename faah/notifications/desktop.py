from __future__ import annotations

import logging
import shutil
import subprocess
from typing import ClassVar

from .models import Category, NotificationEvent

log = logging.getLogger(__name__)


class DesktopNotifier:
    CATEGORY_URGENCY: ClassVar[dict[Category, str]] = {
        Category.ERROR: "critical",
        Category.PERMISSION: "normal",
        Category.REPLY: "low",
    }

    CATEGORY_MESSAGE: ClassVar[dict[Category, str]] = {
        Category.ERROR: "Something failed",
        Category.PERMISSION: "Waiting for your approval",
        Category.REPLY: "Reply finished",
    }

    def __init__(
        self,
        enabled: bool = False,
        icon_path: str = "",
        timeout_ms: int = 5000,
    ) -> None:
        self.enabled = enabled
        self.icon_path = icon_path
        self.timeout_ms = timeout_ms
        self._warned_unavailable = False

    def is_available(self) -> bool:
        return shutil.which("notify-send") is not None

    def notify(self, event: NotificationEvent) -> None:
        if not self.enabled:
            return

        if not self.is_available():
            if not self._warned_unavailable:
                log.warning("notify-send not found; desktop notifications unavailable")
                self._warned_unavailable = True
            return

        cmd: list[str] = [
            "notify-send",
            "--urgency", self.CATEGORY_URGENCY.get(event.category, "normal"),
            "--expire-time", str(self.timeout_ms),
        ]

        if self.icon_path:
            cmd.extend(["--icon", self.icon_path])

        message = self.CATEGORY_MESSAGE.get(event.category, event.category.value)
        if event.matched_text:
            message = f"{message}: {event.matched_text.strip()}"
        cmd.extend([f"faah: {event.source}", message])

        try:
            subprocess.Popen(  # noqa: S603
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError:
            log.warning("Failed to launch notify-send", exc_info=True)
