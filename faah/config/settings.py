from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable

from faah.config.defaults import DEFAULT_CONFIG
from faah.notifications.models import Category, Trigger

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Settings:
    """Point-in-time view of the configuration used for one decision."""

    enabled: bool = True
    triggers: dict[Trigger, bool] = field(
        default_factory=lambda: {t: True for t in Trigger}
    )
    cooldown_ms: dict[Category, float] = field(
        default_factory=lambda: {
            Category.PERMISSION: 3000.0,
            Category.REPLY: 2000.0,
            Category.ERROR: 3000.0,
        }
    )
    volume: int = 70
    extra_patterns: dict[Category, tuple[str, ...]] = field(default_factory=dict)
    flush_delay_ms: float = 300.0
    max_chars: int = 4096

    def trigger_enabled(self, trigger: Trigger) -> bool:
        return self.enabled and self.triggers.get(trigger, False)

    def cooldown_for(self, category: Category) -> float:
        return self.cooldown_ms.get(category, self.cooldown_ms[Category.ERROR])

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> Settings:
        general = config_section(cfg, "general")
        detection = config_section(cfg, "detection")
        cooldown = config_section(cfg, "cooldown")
        buffer = config_section(cfg, "buffer")
        patterns = config_section(cfg, "patterns")

        triggers = {t: bool(detection.get(t.value, True)) for t in Trigger}

        default_ms = _number(cooldown, "default_ms", "cooldown")
        cooldown_ms = {
            Category.PERMISSION: _number(cooldown, "permission_ms", "cooldown"),
            Category.REPLY: _number(cooldown, "reply_ms", "cooldown"),
            Category.ERROR: default_ms,
        }

        extra: dict[Category, tuple[str, ...]] = {}
        for category in Category:
            raw = patterns.get(category.value, [])
            if isinstance(raw, str):
                raw = [raw]
            if not isinstance(raw, list):
                log.warning("patterns.%s must be a list, ignoring", category.value)
                raw = []
            extra[category] = tuple(raw)

        volume = int(_number(general, "volume", "general"))
        return cls(
            enabled=bool(general.get("enabled", True)),
            triggers=triggers,
            cooldown_ms=cooldown_ms,
            volume=max(0, min(100, volume)),
            extra_patterns=extra,
            flush_delay_ms=max(0.0, _number(buffer, "flush_delay_ms", "buffer")),
            max_chars=max(1, int(_number(buffer, "max_chars", "buffer"))),
        )


SettingsProvider = Callable[[], Settings]


def _number(section: dict[str, Any], key: str, section_name: str) -> float:
    default = DEFAULT_CONFIG[section_name][key]
    value = section.get(key, default)
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
    ):
        log.warning(
            "Invalid %s.%s=%r, using default %r", section_name, key, value, default
        )
        return float(default)
    return float(value)


def config_section(cfg: dict[str, Any], name: str) -> dict[str, Any]:
    section = cfg.get(name, {})
    if not isinstance(section, dict):
        log.warning("[%s] must be a table, using defaults", name)
        return {}
    return section
