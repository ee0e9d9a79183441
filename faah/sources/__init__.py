from __future__ import annotations

from .diagnostics import Severity, parse_diagnostics, summarize
from .pty_process import PTYProcess
from .reader import iter_chunks, open_stdin_reader, pump

__all__ = [
    "Severity",
    "parse_diagnostics",
    "summarize",
    "PTYProcess",
    "iter_chunks",
    "open_stdin_reader",
    "pump",
]
