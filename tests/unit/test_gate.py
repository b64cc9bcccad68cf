# tests/unit/test_gate.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from image_recognition.core.pipeline.gate import IdempotencyGate, should_process
from tests.utils import DEFAULT_MODIFIED, make_asset


def test_equal_timestamps_skip():
    assert should_process(make_asset(), DEFAULT_MODIFIED) is False


def test_modified_after_recognition_processes():
    assert should_process(make_asset(), DEFAULT_MODIFIED - timedelta(milliseconds=1)) is True


def test_recognized_after_modification_skips():
    assert should_process(make_asset(), DEFAULT_MODIFIED + timedelta(seconds=5)) is False


def test_never_recognized_processes():
    assert should_process(make_asset(), None) is True


def test_naive_timestamps_are_utc():
    naive = DEFAULT_MODIFIED.replace(tzinfo=None)
    assert should_process(make_asset(), naive) is False
    shifted = DEFAULT_MODIFIED.astimezone(timezone(timedelta(hours=2)))
    assert should_process(make_asset(), shifted) is False


def test_zero_retries_never_defers():
    gate = IdempotencyGate()
    a = make_asset()
    assert gate.should_defer(a) is False
    assert gate.should_defer(a) is False


def test_bounded_retries_then_advance():
    gate = IdempotencyGate(max_degraded_retries=2)
    a = make_asset()
    assert gate.should_defer(a) is True
    assert gate.should_defer(a) is True
    assert gate.degraded_count(a.asset_id) == 2
    assert gate.should_defer(a) is False
    # Budget spent → counter resets for the next streak
    assert gate.degraded_count(a.asset_id) == 0
    assert gate.should_defer(a) is True


def test_success_resets_counter():
    gate = IdempotencyGate(max_degraded_retries=3)
    a, b = make_asset("a"), make_asset("b")
    gate.should_defer(a)
    gate.should_defer(b)
    gate.record_success(a)
    assert gate.degraded_count("a") == 0
    assert gate.degraded_count("b") == 1


def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        IdempotencyGate(max_degraded_retries=-1)


def test_gate_should_process_delegates():
    gate = IdempotencyGate()
    assert gate.should_process(make_asset(), datetime(2000, 1, 1, tzinfo=timezone.utc)) is True
