"""Tests for the bounded readiness poller (fake clock, no real sleeping)."""

import threading

import pytest

from synaptic.core.readiness import ReadinessPoller, RetryPolicy
from synaptic.exceptions import ReadinessTimeout


def _poller(console, clock) -> ReadinessPoller:
    return ReadinessPoller(console, sleep=clock.sleep, clock=clock)


class TestRetryPolicy:

    def test_default_budget_is_58_seconds(self):
        assert RetryPolicy().budget == 58.0

    def test_timeout_caps_budget(self):
        assert RetryPolicy(max_attempts=30, delay=2.0, timeout=10.0).budget == 10.0


class TestWait:

    def test_never_ready_gives_up_after_30_attempts(self, console, clock, capsys):
        calls = []
        ready = _poller(console, clock).wait("PostgreSQL", lambda: calls.append(1) or False, RetryPolicy())

        assert ready is False
        assert len(calls) == 30
        assert len(clock.sleeps) == 29
        assert clock.now == pytest.approx(58.0)
        out = capsys.readouterr().out
        assert "Waiting for PostgreSQL... (attempt 1/30)" in out
        assert "Waiting for PostgreSQL... (attempt 30/30)" in out
        assert "is ready" not in out

    def test_returns_as_soon_as_check_passes(self, console, clock, capsys):
        results = iter([False, False, True])
        ready = _poller(console, clock).wait("PostgreSQL", lambda: next(results), RetryPolicy())

        assert ready is True
        assert clock.sleeps == [2.0, 2.0]
        assert "PostgreSQL is ready!" in capsys.readouterr().out

    def test_ready_on_last_allowed_attempt(self, console, clock):
        calls = []

        def check():
            calls.append(1)
            return len(calls) == 30

        assert _poller(console, clock).wait("PostgreSQL", check, RetryPolicy()) is True
        assert len(calls) == 30
        assert len(clock.sleeps) == 29
        assert clock.now == pytest.approx(58.0)

    def test_first_attempt_success_does_not_sleep(self, console, clock):
        assert _poller(console, clock).wait("db", lambda: True, RetryPolicy()) is True
        assert clock.sleeps == []

    def test_exception_in_check_counts_as_not_ready(self, console, clock):
        attempts = []

        def check():
            attempts.append(1)
            if len(attempts) < 2:
                raise ConnectionError("refused")
            return True

        assert _poller(console, clock).wait("db", check, RetryPolicy()) is True
        assert len(attempts) == 2

    def test_deadline_stops_before_attempts_run_out(self, console, clock):
        calls = []
        policy = RetryPolicy(max_attempts=30, delay=2.0, timeout=5.0)
        ready = _poller(console, clock).wait("db", lambda: calls.append(1) or False, policy)

        assert ready is False
        # attempts at t=0, 2, 4 and 6; the deadline is checked after each
        assert len(calls) == 4

    def test_cancel_event_stops_polling(self, console, clock):
        cancel = threading.Event()
        calls = []

        def check():
            calls.append(1)
            cancel.set()
            return False

        ready = _poller(console, clock).wait("db", check, RetryPolicy(), cancel=cancel)

        assert ready is False
        assert len(calls) == 1
        assert clock.sleeps == []

    def test_custom_policy_is_honoured(self, console, clock):
        calls = []
        policy = RetryPolicy(max_attempts=3, delay=0.5)
        _poller(console, clock).wait("db", lambda: calls.append(1) or False, policy)

        assert len(calls) == 3
        assert clock.sleeps == [0.5, 0.5]


class TestRequire:

    def test_raises_readiness_timeout(self, console, clock):
        with pytest.raises(ReadinessTimeout) as exc_info:
            _poller(console, clock).require("PostgreSQL", lambda: False, RetryPolicy())

        assert exc_info.value.target == "PostgreSQL"
        assert exc_info.value.attempts == 30
        assert "did not become ready after 30 attempts" in str(exc_info.value)

    def test_returns_none_when_ready(self, console, clock):
        assert _poller(console, clock).require("db", lambda: True, RetryPolicy()) is None
