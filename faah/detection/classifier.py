from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from faah.notifications.models import Category

from .patterns import PatternSet


@dataclass(frozen=True, slots=True)
class PatternMatch:
    category: Category
    matched_text: str
    pattern: str


def classify(text: str, pattern_sets: Iterable[PatternSet]) -> PatternMatch | None:
    """Return the first category whose pattern set matches *text*.

    *pattern_sets* must already be in priority order; evaluation stops at the
    first set with a matching rule.
    """
    if not text:
        return None
    for pattern_set in pattern_sets:
        hit = pattern_set.first_match(text)
        if hit is None:
            continue
        rule, m = hit
        return PatternMatch(
            category=pattern_set.category,
            matched_text=m.group(),
            pattern=rule.regex.pattern,
        )
    return None
