from __future__ import annotations

import threading

from faah.config.settings import Settings
from faah.notifications.cooldown import NEVER, CooldownGate
from faah.notifications.models import Category, Trigger


def _gate(cfg: dict | None = None, clock=None) -> CooldownGate:
    settings = Settings.from_config(cfg or {})
    if clock is None:
        return CooldownGate(lambda: settings)
    return CooldownGate(lambda: settings, clock=clock)


W = 2000


def _reply_gate() -> CooldownGate:
    return _gate({"cooldown": {"reply_ms": W}})


def test_first_attempt_is_allowed() -> None:
    gate = _reply_gate()
    assert gate._last_dispatch_at[Category.REPLY] == NEVER
    assert gate.try_dispatch(Category.REPLY, now=0) is True
    assert gate._last_dispatch_at[Category.REPLY] == 0


def test_inside_window_is_suppressed() -> None:
    gate = _reply_gate()
    assert gate.try_dispatch(Category.REPLY, now=1000)
    assert gate.try_dispatch(Category.REPLY, now=1000 + W - 1) is False


def test_window_boundary_is_allowed() -> None:
    gate = _reply_gate()
    assert gate.try_dispatch(Category.REPLY, now=1000)
    assert gate.try_dispatch(Category.REPLY, now=1000 + W) is True


def test_suppressed_attempt_does_not_advance_window() -> None:
    gate = _reply_gate()
    assert gate.try_dispatch(Category.REPLY, now=0)
    assert not gate.try_dispatch(Category.REPLY, now=W - 1)
    assert gate._last_dispatch_at[Category.REPLY] == 0
    assert gate.try_dispatch(Category.REPLY, now=W)


def test_categories_have_independent_windows() -> None:
    gate = _gate({"cooldown": {"permission_ms": 5000, "reply_ms": 100, "default_ms": 1000}})
    assert gate.try_dispatch(Category.PERMISSION, now=0)
    assert gate.try_dispatch(Category.REPLY, now=0)
    assert gate.try_dispatch(Category.ERROR, now=0)

    assert gate.try_dispatch(Category.REPLY, now=100)
    assert not gate.try_dispatch(Category.ERROR, now=999)
    assert gate.try_dispatch(Category.ERROR, now=1000)
    assert not gate.try_dispatch(Category.PERMISSION, now=4999)


def test_error_sources_share_one_window() -> None:
    gate = _gate({"cooldown": {"default_ms": 1000}})
    assert gate.try_dispatch(Category.ERROR, now=0, trigger=Trigger.TASK_FAILURE)
    assert not gate.try_dispatch(Category.ERROR, now=10, trigger=Trigger.DIAGNOSTIC_ERROR)
    assert not gate.try_dispatch(Category.ERROR, now=20, trigger=Trigger.TERMINAL_ERROR)


def test_master_switch_off_leaves_state_untouched() -> None:
    gate = _gate({"general": {"enabled": False}})
    assert gate.try_dispatch(Category.ERROR, now=0) is False
    assert gate._last_dispatch_at[Category.ERROR] == NEVER


def test_trigger_flag_checked_per_source() -> None:
    gate = _gate({"detection": {"task_failures": False}})
    assert gate.try_dispatch(Category.ERROR, now=0, trigger=Trigger.TASK_FAILURE) is False
    assert gate._last_dispatch_at[Category.ERROR] == NEVER
    assert gate.try_dispatch(Category.ERROR, now=0, trigger=Trigger.TERMINAL_ERROR) is True


def test_default_trigger_follows_category() -> None:
    gate = _gate({"detection": {"reply": False}})
    assert gate.try_dispatch(Category.REPLY, now=0) is False


def test_clock_used_when_now_omitted() -> None:
    now = [5000.0]
    gate = _gate({"cooldown": {"reply_ms": W}}, clock=lambda: now[0])
    assert gate.try_dispatch(Category.REPLY)
    assert gate._last_dispatch_at[Category.REPLY] == 5000.0
    now[0] += W - 1
    assert not gate.try_dispatch(Category.REPLY)
    now[0] += 1
    assert gate.try_dispatch(Category.REPLY)


def test_zero_cooldown_always_allows() -> None:
    gate = _gate({"cooldown": {"reply_ms": 0}})
    assert gate.try_dispatch(Category.REPLY, now=0)
    assert gate.try_dispatch(Category.REPLY, now=0)


def test_reset() -> None:
    gate = _reply_gate()
    gate.try_dispatch(Category.REPLY, now=0)
    gate.try_dispatch(Category.ERROR, now=0)
    gate.reset(Category.REPLY)
    assert gate._last_dispatch_at[Category.REPLY] == NEVER
    assert gate._last_dispatch_at[Category.ERROR] == 0
    gate.reset()
    assert gate._last_dispatch_at[Category.ERROR] == NEVER


def test_concurrent_attempts_allow_exactly_one() -> None:
    gate = _reply_gate()
    barrier = threading.Barrier(8)
    results: list[bool] = []
    lock = threading.Lock()

    def attempt() -> None:
        barrier.wait()
        ok = gate.try_dispatch(Category.REPLY, now=100)
        with lock:
            results.append(ok)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
