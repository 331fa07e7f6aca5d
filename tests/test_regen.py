"""Tests for symgraph.infrastructure.regen: debounced regeneration trigger."""

from __future__ import annotations

import threading
import time

import pytest

from symgraph.infrastructure.regen import RegenerationScheduler


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[int] = []
        self.fired = threading.Event()

    def __call__(self, pending: int) -> None:
        self.calls.append(pending)
        self.fired.set()


class TestRegenerationScheduler:
    def test_threshold_fires_immediately(self) -> None:
        recorder = _Recorder()
        scheduler = RegenerationScheduler(recorder, threshold=3, delay_s=60.0)
        scheduler.start()
        try:
            for _ in range(3):
                scheduler.notify()
            assert recorder.fired.wait(2.0)
            assert recorder.calls == [3]
        finally:
            scheduler.stop()

    def test_idle_delay_fires_for_pending(self) -> None:
        recorder = _Recorder()
        scheduler = RegenerationScheduler(recorder, threshold=100, delay_s=0.05)
        scheduler.start()
        try:
            scheduler.notify()
            scheduler.notify()
            assert recorder.fired.wait(2.0)
            assert recorder.calls == [2]
        finally:
            scheduler.stop()

    def test_counter_resets_after_firing(self) -> None:
        recorder = _Recorder()
        scheduler = RegenerationScheduler(recorder, threshold=2, delay_s=60.0)
        scheduler.start()
        try:
            for _ in range(5):
                scheduler.notify()
            deadline = time.monotonic() + 2.0
            while (len(recorder.calls) < 2 or scheduler.pending < 1) and (
                time.monotonic() < deadline
            ):
                time.sleep(0.01)
            assert recorder.calls == [2, 2]
            assert scheduler.pending == 1
        finally:
            scheduler.stop()

    def test_stop_cancels_pending(self) -> None:
        recorder = _Recorder()
        scheduler = RegenerationScheduler(recorder, threshold=100, delay_s=0.2)
        scheduler.start()
        scheduler.notify()
        scheduler.stop()

        assert not recorder.fired.wait(0.4)
        assert recorder.calls == []
        assert not scheduler.running
        assert scheduler.pending == 0

    def test_callback_error_does_not_kill_worker(self) -> None:
        calls: list[int] = []
        fired = threading.Event()

        def flaky(pending: int) -> None:
            calls.append(pending)
            if len(calls) == 1:
                raise RuntimeError("downstream failed")
            fired.set()

        scheduler = RegenerationScheduler(flaky, threshold=1, delay_s=60.0)
        scheduler.start()
        try:
            scheduler.notify()
            scheduler.notify()
            assert fired.wait(2.0)
            assert calls == [1, 1]
            assert scheduler.running
        finally:
            scheduler.stop()

    def test_start_is_idempotent(self) -> None:
        scheduler = RegenerationScheduler(_Recorder())
        scheduler.start()
        try:
            thread = scheduler._thread
            scheduler.start()
            assert scheduler._thread is thread
        finally:
            scheduler.stop()

    def test_invalid_threshold(self) -> None:
        with pytest.raises(ValueError):
            RegenerationScheduler(_Recorder(), threshold=0)
