"""Tests for the polled debouncer."""

import pytest

from pedalnav.debounce import Debouncer


def test_fires_once_after_the_interval(clock):
    calls = []
    debouncer = Debouncer(1.0, clock)
    debouncer.submit(lambda x: calls.append(x) or x * 2, 21)

    clock.advance(0.5)
    assert debouncer.poll() == (False, None)
    assert debouncer.pending

    clock.advance(0.5)
    assert debouncer.poll() == (True, 42)
    assert calls == [21]
    assert not debouncer.pending
    assert debouncer.poll() == (False, None)


def test_resubmit_restarts_the_deadline(clock):
    calls = []
    debouncer = Debouncer(1.0, clock)
    debouncer.submit(calls.append, "first")
    clock.advance(0.8)
    debouncer.submit(calls.append, "second")
    assert debouncer.deadline == pytest.approx(1.8)

    clock.advance(0.7)
    assert debouncer.poll() == (False, None)
    clock.advance(0.5)
    fired, _ = debouncer.poll()
    assert fired
    assert calls == ["second"]


def test_cancel_drops_the_action(clock):
    calls = []
    debouncer = Debouncer(1.0, clock)
    debouncer.submit(calls.append, "x")
    debouncer.cancel()
    clock.advance(5)
    assert debouncer.poll() == (False, None)
    assert calls == []
    assert debouncer.deadline is None


def test_poll_accepts_an_explicit_time(clock):
    debouncer = Debouncer(2.0, clock)
    debouncer.submit(lambda: "done")
    assert debouncer.poll(now=1.9) == (False, None)
    assert debouncer.poll(now=2.0) == (True, "done")
