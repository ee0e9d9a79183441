from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Hashable

from faah.config.settings import SettingsProvider

log = logging.getLogger(__name__)

FlushCallback = Callable[[Hashable, str], object]  # stream_key, text


@dataclass
class StreamBuffer:
    stream_key: Hashable
    pending_text: str = ""
    flush_handle: asyncio.TimerHandle | None = None

    def cancel_flush(self) -> None:
        if self.flush_handle is not None:
            self.flush_handle.cancel()
            self.flush_handle = None


class StreamBufferManager:
    """Accumulate fragments per stream and flush after a quiet period.

    Every new fragment pushes the flush deadline back, so a stream that keeps
    talking is only classified once it pauses for ``flush_delay_ms``.  Each
    buffer keeps at most ``max_chars`` trailing characters.
    """

    def __init__(
        self,
        on_flush: FlushCallback,
        settings_provider: SettingsProvider,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._on_flush = on_flush
        self._settings = settings_provider
        self._loop = loop
        self._buffers: dict[Hashable, StreamBuffer] = {}

    def attach_to_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    def ingest(self, stream_key: Hashable, fragment: str) -> None:
        settings = self._settings()
        if not settings.enabled or not fragment:
            return

        buf = self._buffers.get(stream_key)
        if buf is None:
            buf = StreamBuffer(stream_key)
            self._buffers[stream_key] = buf

        text = buf.pending_text + fragment
        if len(text) > settings.max_chars:
            text = text[-settings.max_chars:]
        buf.pending_text = text

        buf.cancel_flush()
        if self._loop is None:
            # No event loop: flush immediately.
            self._flush(stream_key)
            return
        buf.flush_handle = self._loop.call_later(
            settings.flush_delay_ms / 1000.0, self._flush, stream_key
        )

    # ------------------------------------------------------------------
    # Flush / disposal
    # ------------------------------------------------------------------

    def flush_now(self, stream_key: Hashable) -> None:
        """Flush whatever is pending for *stream_key* without waiting."""
        buf = self._buffers.get(stream_key)
        if buf is None:
            return
        buf.cancel_flush()
        self._flush(stream_key)

    def dispose(self, stream_key: Hashable) -> None:
        """Forget a closed stream.  Its pending flush never fires."""
        buf = self._buffers.pop(stream_key, None)
        if buf is not None:
            buf.cancel_flush()

    def close_all(self) -> None:
        for key in list(self._buffers):
            self.dispose(key)

    def _flush(self, stream_key: Hashable) -> None:
        buf = self._buffers.get(stream_key)
        if buf is None:
            return
        buf.flush_handle = None
        text = buf.pending_text
        buf.pending_text = ""
        if not text:
            return
        log.debug("Flushing %d chars from stream %r", len(text), stream_key)
        try:
            self._on_flush(stream_key, text)
        except Exception:
            log.warning("Flush handler failed for stream %r", stream_key, exc_info=True)
