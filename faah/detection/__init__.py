from __future__ import annotations

from .sanitizer import sanitize
from .patterns import PatternRule, PatternSet, build_pattern_set, build_pattern_sets
from .classifier import PatternMatch, classify
from .stream_buffer import StreamBuffer, StreamBufferManager

__all__ = [
    "sanitize",
    "PatternRule",
    "PatternSet",
    "build_pattern_set",
    "build_pattern_sets",
    "PatternMatch",
    "classify",
    "StreamBuffer",
    "StreamBufferManager",
]
