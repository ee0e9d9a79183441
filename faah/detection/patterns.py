from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from faah.config.settings import Settings
from faah.notifications.models import CATEGORY_PRIORITY, TEXT_TRIGGER, Category

log = logging.getLogger(__name__)

# Terminal fragments are flushed on a timer, not on line boundaries, so
# anchors must apply per line.
PATTERN_FLAGS = re.IGNORECASE | re.MULTILINE

BUILTIN_PATTERNS: dict[Category, list[str]] = {
    Category.PERMISSION: [
        r"Allow\s+(?:once|always)",
        r"Do you want to (?:run|allow|proceed|execute|approve)",
        r"\(y/n\)",
        r"\[y/n\]",
        r"Press Enter to allow",
        r"\b(?:approve|deny|reject)\b",
        r"Run this command\?",
        r"Allow this (?:tool|action|edit|write|command)",
        r"Save changes\?",
    ],
    Category.REPLY: [
        # Prompt glyph back at the end of output: the CLI is waiting again.
        r"❯\s*$",
        r"⏺",
        r"^(?:I'll |Let me |Here's |I've |I can |Sure|Looking at)",
        r"Done in ",
    ],
    Category.ERROR: [
        r"exit code [1-9]\d*",
        r"exited with code [1-9]\d*",
        r"returned exit code [1-9]\d*",
        r"^error[:\s]",
        r"^fatal[:\s]",
        r"ERR!",
        r"\bFAILED\b",
        r"Command failed",
        r"Error:",
    ],
}


@dataclass(frozen=True, slots=True)
class PatternRule:
    category: Category
    regex: re.Pattern[str]
    builtin: bool = True

    def search(self, text: str) -> re.Match[str] | None:
        return self.regex.search(text)


@dataclass(frozen=True, slots=True)
class PatternSet:
    category: Category
    rules: tuple[PatternRule, ...]

    def first_match(self, text: str) -> tuple[PatternRule, re.Match[str]] | None:
        for rule in self.rules:
            m = rule.search(text)
            if m:
                return rule, m
        return None

    def __len__(self) -> int:
        return len(self.rules)


def _compile_builtins() -> dict[Category, tuple[PatternRule, ...]]:
    return {
        category: tuple(
            PatternRule(category, re.compile(p, PATTERN_FLAGS)) for p in raw
        )
        for category, raw in BUILTIN_PATTERNS.items()
    }


_BUILTIN_RULES = _compile_builtins()


def compile_user_patterns(
    category: Category, raw_patterns: Iterable[object]
) -> list[PatternRule]:
    """Compile user-supplied regexes, dropping any that are not valid."""
    rules: list[PatternRule] = []
    for raw in raw_patterns:
        if not isinstance(raw, str) or not raw:
            log.debug("Ignoring non-string %s pattern %r", category.value, raw)
            continue
        try:
            rx = re.compile(raw, PATTERN_FLAGS)
        except re.error as exc:
            log.debug("Dropping invalid %s pattern %r: %s", category.value, raw, exc)
            continue
        rules.append(PatternRule(category, rx, builtin=False))
    return rules


def build_pattern_set(category: Category, extra: Iterable[object] = ()) -> PatternSet:
    rules = _BUILTIN_RULES[category] + tuple(compile_user_patterns(category, extra))
    return PatternSet(category, rules)


def build_pattern_sets(settings: Settings) -> list[PatternSet]:
    """Pattern sets for every enabled text category, in priority order."""
    return [
        build_pattern_set(category, settings.extra_patterns.get(category, ()))
        for category in CATEGORY_PRIORITY
        if settings.trigger_enabled(TEXT_TRIGGER[category])
    ]
