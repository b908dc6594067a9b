"""Tests for the stack lock and scoped registry lock."""

import os
from unittest.mock import patch

import pytest

from synaptic.core.locking import StackLock, scoped_lock
from synaptic.exceptions import LockHeld


class TestStackLock:

    def test_acquire_records_pid_and_release_removes_file(self, tmp_path):
        lock_path = tmp_path / ".synaptic.lock"
        lock = StackLock(lock_path)

        lock.acquire()
        assert lock.held
        assert lock_path.read_text() == str(os.getpid())

        lock.release()
        assert not lock.held
        assert not lock_path.exists()

    def test_second_lock_is_refused(self, tmp_path):
        lock_path = tmp_path / ".synaptic.lock"
        with StackLock(lock_path):
            with pytest.raises(LockHeld) as exc_info:
                StackLock(lock_path).acquire()

        assert exc_info.value.owner_pid == os.getpid()
        assert str(lock_path) in str(exc_info.value)

    def test_lock_can_be_taken_again_after_release(self, tmp_path):
        lock_path = tmp_path / ".synaptic.lock"
        with StackLock(lock_path):
            pass
        with StackLock(lock_path) as lock:
            assert lock.held

    def test_release_without_acquire_is_noop(self, tmp_path):
        StackLock(tmp_path / ".synaptic.lock").release()

    def test_stale_lock_with_dead_owner_is_recovered(self, tmp_path):
        lock_path = tmp_path / ".synaptic.lock"
        holder = StackLock(lock_path)
        holder.acquire()
        try:
            with patch("synaptic.core.locking.pid_alive", return_value=False):
                # The holder still has the file locked, so recovery unlinks the
                # stale path and locks a fresh file in its place.
                recovered = StackLock(lock_path)
                recovered.acquire()
            assert recovered.held
            assert lock_path.read_text() == str(os.getpid())
            recovered.release()
        finally:
            holder.release()

    def test_live_owner_is_not_treated_as_stale(self, tmp_path):
        lock_path = tmp_path / ".synaptic.lock"
        with StackLock(lock_path):
            with patch("synaptic.core.locking.pid_alive", return_value=True):
                with pytest.raises(LockHeld):
                    StackLock(lock_path).acquire()


class TestScopedLock:

    def test_creates_parent_directory(self, tmp_path):
        lock_path = tmp_path / "logs" / "registry.lock"
        with scoped_lock(lock_path):
            assert lock_path.exists()

    def test_can_be_taken_repeatedly(self, tmp_path):
        lock_path = tmp_path / "registry.lock"
        with scoped_lock(lock_path):
            pass
        with scoped_lock(lock_path):
            pass
