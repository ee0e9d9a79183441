from __future__ import annotations

import json
import logging
from enum import IntEnum
from typing import Any

log = logging.getLogger(__name__)


class Severity(IntEnum):
    """LSP ``DiagnosticSeverity`` values."""

    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


_SEVERITY_NAMES: dict[str, Severity] = {
    "error": Severity.ERROR,
    "fatal": Severity.ERROR,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "information": Severity.INFORMATION,
    "info": Severity.INFORMATION,
    "hint": Severity.HINT,
}

_DOCUMENT_KEYS: tuple[str, ...] = ("uri", "file", "filename", "path")


def parse_severity(value: Any) -> Severity | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            return Severity(value)
        except ValueError:
            return None
    if isinstance(value, str):
        return _SEVERITY_NAMES.get(value.strip().lower())
    return None


def summarize(payload: Any) -> dict[str, bool]:
    """Reduce a diagnostics payload to ``{document: has_error_severity}``.

    Accepted shapes:

    * ``{"uri": ..., "diagnostics": [{"severity": 1}, ...]}`` (LSP publish)
    * a list of such objects
    * ``{"generalDiagnostics": [{"file": ..., "severity": "error"}, ...]}``
    * a flat list of diagnostics that each name their document
    * ``{document: [diagnostic, ...]}``

    Unrecognised entries are skipped.
    """
    summary: dict[str, bool] = {}

    def record(document: str, diagnostics: Any) -> None:
        if not isinstance(diagnostics, list):
            return
        has_error = any(
            isinstance(d, dict) and parse_severity(d.get("severity")) is Severity.ERROR
            for d in diagnostics
        )
        summary[document] = summary.get(document, False) or has_error

    def visit(item: Any) -> None:
        if isinstance(item, list):
            for entry in item:
                visit(entry)
            return
        if not isinstance(item, dict):
            return
        if "generalDiagnostics" in item:
            visit(item["generalDiagnostics"])
            return
        document = next((str(item[k]) for k in _DOCUMENT_KEYS if k in item), None)
        if "diagnostics" in item:
            record(document or "<unknown>", item["diagnostics"])
        elif "severity" in item:
            record(document or "<unknown>", [item])
        else:
            for key, value in item.items():
                if isinstance(value, list):
                    record(str(key), value)

    visit(payload)
    return summary


def parse_diagnostics(text: str) -> dict[str, bool]:
    """Parse JSON (or JSON Lines) diagnostics text into a batch summary."""
    text = text.strip()
    if not text:
        return {}
    try:
        return summarize(json.loads(text))
    except json.JSONDecodeError:
        pass

    batch: dict[str, bool] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            log.debug("Skipping non-JSON diagnostics line %d", lineno)
            continue
        for document, has_error in summarize(entry).items():
            batch[document] = batch.get(document, False) or has_error
    return batch
