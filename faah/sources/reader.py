from __future__ import annotations

import asyncio
import codecs
import logging
import sys
from typing import AsyncIterator, Callable, Hashable

log = logging.getLogger(__name__)

IngestCallback = Callable[[Hashable, str], None]  # stream_key, fragment


async def iter_chunks(
    reader: asyncio.StreamReader, chunk_size: int = 4096
) -> AsyncIterator[str]:
    """Yield decoded text chunks from *reader* as they arrive.

    Multi-byte characters split across reads are held back until complete.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await reader.read(chunk_size)
        if not data:
            tail = decoder.decode(b"", final=True)
            if tail:
                yield tail
            return
        text = decoder.decode(data)
        if text:
            yield text


async def pump(
    stream_key: Hashable,
    reader: asyncio.StreamReader,
    ingest: IngestCallback,
    echo: Callable[[str], object] | None = None,
) -> None:
    """Feed every chunk from *reader* into *ingest* until EOF.

    A failing source is logged and simply stops contributing fragments.
    """
    try:
        async for chunk in iter_chunks(reader):
            if echo is not None:
                echo(chunk)
            ingest(stream_key, chunk)
    except asyncio.CancelledError:
        raise
    except Exception:
        log.warning("Fragment source %r failed", stream_key, exc_info=True)


async def open_stdin_reader(
    loop: asyncio.AbstractEventLoop | None = None,
) -> asyncio.StreamReader:
    """Wrap ``sys.stdin`` in an ``asyncio.StreamReader``."""
    loop = loop or asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    return reader
