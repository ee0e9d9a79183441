from __future__ import annotations

import asyncio

import pytest

from faah.config.settings import Settings
from faah.detection.stream_buffer import StreamBufferManager


def _provider(flush_delay_ms: float = 100, max_chars: int = 4096, enabled: bool = True):
    settings = Settings.from_config(
        {
            "general": {"enabled": enabled},
            "buffer": {"flush_delay_ms": flush_delay_ms, "max_chars": max_chars},
        }
    )
    return lambda: settings


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[object, str]] = []

    def __call__(self, key: object, text: str) -> None:
        self.calls.append((key, text))

    def texts(self, key: object) -> list[str]:
        return [t for k, t in self.calls if k == key]


# ── Synchronous fallback ──────────────────────────────────────────


def test_without_loop_each_fragment_flushes_immediately() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider())
    mgr.ingest("t1", "hello")
    mgr.ingest("t1", " world")
    assert rec.calls == [("t1", "hello"), ("t1", " world")]
    assert mgr._buffers["t1"].pending_text == ""


def test_master_switch_off_ignores_fragments() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider(enabled=False))
    mgr.ingest("t1", "error: boom")
    assert rec.calls == []
    assert mgr._buffers == {}


def test_failing_flush_handler_is_contained() -> None:
    calls: list[str] = []

    def handler(key: object, text: str) -> None:
        calls.append(text)
        raise RuntimeError("sink exploded")

    mgr = StreamBufferManager(handler, _provider())
    mgr.ingest("t1", "one")
    mgr.ingest("t1", "two")
    assert calls == ["one", "two"]


def test_empty_fragment_is_ignored() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider())
    mgr.ingest("t1", "")
    assert rec.calls == []


# ── Debounce ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_fragments_within_delay_are_coalesced() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider(100), loop=asyncio.get_running_loop())

    for frag in ("err", "or: bo", "om"):
        mgr.ingest("t1", frag)
        await asyncio.sleep(0.01)

    assert rec.calls == []
    assert mgr._buffers["t1"].flush_handle is not None

    await asyncio.sleep(0.3)
    assert rec.calls == [("t1", "error: boom")]
    assert mgr._buffers["t1"].flush_handle is None


@pytest.mark.asyncio
async def test_steady_trickle_defers_flush_until_pause() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider(100), loop=asyncio.get_running_loop())

    for i in range(8):
        mgr.ingest("t1", str(i))
        await asyncio.sleep(0.03)
    assert rec.calls == []

    await asyncio.sleep(0.3)
    assert rec.calls == [("t1", "01234567")]


@pytest.mark.asyncio
async def test_buffer_starts_fresh_after_flush() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider(50), loop=asyncio.get_running_loop())

    mgr.ingest("t1", "first")
    await asyncio.sleep(0.2)
    mgr.ingest("t1", "second")
    await asyncio.sleep(0.2)

    assert rec.texts("t1") == ["first", "second"]


# ── Buffer cap ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_only_trailing_max_chars_are_kept() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(
        rec, _provider(50, max_chars=4096), loop=asyncio.get_running_loop()
    )
    head = "a" * 3000
    tail = "b" * 2000 + "error: boom"
    mgr.ingest("t1", head)
    mgr.ingest("t1", tail)

    expected = (head + tail)[-4096:]
    assert mgr._buffers["t1"].pending_text == expected
    assert len(expected) == 4096

    await asyncio.sleep(0.2)
    assert rec.calls == [("t1", expected)]


def test_single_oversized_fragment_is_trimmed() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider(max_chars=10))
    mgr.ingest("t1", "0123456789ABCDEF")
    assert rec.calls == [("t1", "6789ABCDEF")]


# ── Stream independence ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_interleaved_streams_stay_independent() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider(80), loop=asyncio.get_running_loop())

    fragments = [
        ("t1", "err"),
        ("t2", "Let "),
        ("t1", "or: "),
        ("t2", "me see"),
        ("t1", "boom"),
    ]
    for key, frag in fragments:
        mgr.ingest(key, frag)

    await asyncio.sleep(0.3)
    assert rec.texts("t1") == ["error: boom"]
    assert rec.texts("t2") == ["Let me see"]


@pytest.mark.asyncio
async def test_one_stream_does_not_delay_another() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider(100), loop=asyncio.get_running_loop())

    mgr.ingest("quiet", "Done in 1s")
    for i in range(6):
        mgr.ingest("chatty", str(i))
        await asyncio.sleep(0.04)

    assert rec.texts("quiet") == ["Done in 1s"]
    assert rec.texts("chatty") == []


# ── Disposal / explicit flush ────────────────────────────────────


@pytest.mark.asyncio
async def test_dispose_cancels_pending_flush() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider(50), loop=asyncio.get_running_loop())

    mgr.ingest("t1", "error: boom")
    mgr.dispose("t1")
    await asyncio.sleep(0.2)

    assert rec.calls == []
    assert mgr._buffers == {}


@pytest.mark.asyncio
async def test_flush_now_runs_once() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider(50), loop=asyncio.get_running_loop())

    mgr.ingest("t1", "fatal: oops")
    mgr.flush_now("t1")
    assert rec.calls == [("t1", "fatal: oops")]

    await asyncio.sleep(0.2)
    assert rec.calls == [("t1", "fatal: oops")]


@pytest.mark.asyncio
async def test_close_all_disposes_every_stream() -> None:
    rec = Recorder()
    mgr = StreamBufferManager(rec, _provider(50), loop=asyncio.get_running_loop())

    mgr.ingest("t1", "a")
    mgr.ingest("t2", "b")
    mgr.close_all()
    await asyncio.sleep(0.2)

    assert rec.calls == []
    assert mgr._buffers == {}


def test_unknown_stream_operations_are_noops() -> None:
    mgr = StreamBufferManager(Recorder(), _provider())
    mgr.flush_now("nope")
    mgr.dispose("nope")
    assert mgr._buffers == {}
