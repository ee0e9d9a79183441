from __future__ import annotations

import re

# CSI, OSC (BEL or ST terminated), DCS/SOS/PM/APC strings, two-char escapes
# and the 8-bit CSI introducer.
ANSI_ESCAPE_RE = re.compile(
    r"\x1B\[[0-?]*[ -/]*[@-~]"
    r"|\x1B\][^\x07\x1B]*(?:\x07|\x1B\\)"
    r"|\x1B[PX^_][^\x1B]*\x1B\\"
    r"|\x1B[ -/]*[0-Z\\^-~]"
    r"|\x9B[0-?]*[ -/]*[@-~]"
)

# Sequences cut off at the end of a flushed chunk.
TRUNCATED_ESCAPE_RE = re.compile(
    r"(?:\x1B\[[0-?]*[ -/]*"
    r"|\x1B\][^\x07\x1B]*"
    r"|\x1B[PX^_][^\x1B]*"
    r"|\x1B[ -/]*"
    r"|\x9B[0-?]*[ -/]*)\Z"
)

# Remaining C0/C1 controls, keeping \t and \n.
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B-\x1F\x7F-\x9F]")


def sanitize(text: str) -> str:
    """Strip terminal control sequences, keeping printable text and line breaks.

    Carriage returns are folded into newlines so that per-line anchors still
    apply to progress-style output that rewrites the current line.
    """
    if not text:
        return ""
    cleaned = TRUNCATED_ESCAPE_RE.sub("", text)
    cleaned = ANSI_ESCAPE_RE.sub("", cleaned)
    cleaned = cleaned.replace("\r\n", "\n").replace("\r", "\n")
    return CONTROL_CHARS_RE.sub("", cleaned)
