from __future__ import annotations

import threading
import time

import pytest

from forest.errors import LockManagerClosedError, LockTimeoutError
from forest.memory.locks import LockManager


def test_acquire_serialises_same_key() -> None:
    manager = LockManager()
    key = ("p1", "paths/main/hta.json")
    active = 0
    peak = 0
    guard = threading.Lock()

    def worker() -> None:
        nonlocal active, peak
        with manager.acquire(key):
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with guard:
                active -= 1

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert peak == 1
    assert not manager.is_locked(key)
    assert manager.held_keys() == []


def test_timeout_raises_and_releases_bookkeeping() -> None:
    manager = LockManager()
    key = ("p1", "config.json")
    holding = threading.Event()
    release = threading.Event()

    def holder() -> None:
        with manager.acquire(key):
            holding.set()
            release.wait(2)

    thread = threading.Thread(target=holder)
    thread.start()
    assert holding.wait(2)
    try:
        with pytest.raises(LockTimeoutError) as excinfo:
            with manager.acquire(key, timeout=0.05):
                pass
        assert excinfo.value.key == key
        assert isinstance(excinfo.value, TimeoutError)
    finally:
        release.set()
        thread.join()

    with manager.acquire(key, timeout=0.5):
        assert manager.is_locked(key)
    assert not manager.is_locked(key)


def test_distinct_keys_do_not_block_each_other() -> None:
    manager = LockManager()
    with manager.acquire(("p1", "config.json")):
        with manager.acquire(("p2", "config.json"), timeout=0.05):
            assert set(manager.held_keys()) == {("p1", "config.json"), ("p2", "config.json")}


def test_lock_released_when_body_raises() -> None:
    manager = LockManager()
    key = ("p1", "paths/main/hta.json")
    with pytest.raises(RuntimeError):
        with manager.acquire(key):
            raise RuntimeError("boom")
    with manager.acquire(key, timeout=0.05):
        pass


def test_shutdown_rejects_new_acquisitions() -> None:
    with LockManager() as manager:
        with manager.acquire(("p1", "config.json")):
            pass
    assert manager.closed
    with pytest.raises(LockManagerClosedError):
        with manager.acquire(("p1", "config.json")):
            pass


def test_default_timeout_applies_when_caller_omits_one() -> None:
    manager = LockManager(default_timeout=0.05)
    key = ("p1", "config.json")
    with manager.acquire(key):
        failures = []

        def contender() -> None:
            try:
                with manager.acquire(key):
                    pass
            except LockTimeoutError as error:
                failures.append(error)

        thread = threading.Thread(target=contender)
        thread.start()
        thread.join(2)
    assert len(failures) == 1
    assert failures[0].timeout == pytest.approx(0.05)
