"""Per-resource mutual exclusion for document writes."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from ..errors import LockManagerClosedError, LockTimeoutError
from ..telemetry import emit_event

__all__ = ["LockManager", "ResourceKey"]

LOGGER = logging.getLogger(__name__)

ResourceKey = Tuple[str, str]


@dataclass(slots=True)
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0
    held: bool = False


class LockManager:
    """Process-wide table of per-key locks.

    Entries are created on first use and dropped once no caller holds or waits
    on them, so the table only grows with the number of keys in flight. Locks
    are not re-entrant: acquiring a key already held by the same caller
    deadlocks (or times out).
    """

    def __init__(self, *, default_timeout: Optional[float] = None) -> None:
        if default_timeout is not None and default_timeout < 0:
            raise ValueError("default_timeout must be non-negative or None")
        self._default_timeout = default_timeout
        self._guard = threading.Lock()
        self._locks: Dict[ResourceKey, _LockEntry] = {}
        self._closed = False

    @property
    def default_timeout(self) -> Optional[float]:
        return self._default_timeout

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def acquire(self, key: ResourceKey, *, timeout: Optional[float] = None) -> Iterator[ResourceKey]:
        """Hold the lock for ``key`` for the duration of the ``with`` block.

        ``timeout`` overrides the manager default; ``None`` for both waits
        indefinitely. Raises :class:`LockTimeoutError` when the budget elapses.
        """
        budget = self._default_timeout if timeout is None else timeout
        if budget is not None and budget < 0:
            raise ValueError("timeout must be non-negative or None")

        with self._guard:
            if self._closed:
                raise LockManagerClosedError(f"Lock manager is shut down; cannot lock {key!r}")
            entry = self._locks.get(key)
            if entry is None:
                entry = _LockEntry()
                self._locks[key] = entry
            entry.users += 1

        try:
            acquired = entry.lock.acquire(timeout=-1 if budget is None else budget)
            if not acquired:
                LOGGER.warning("Lock timeout on %s after %.3fs", key, budget)
                emit_event("lock.timeout", key=list(key), timeout=budget)
                raise LockTimeoutError(key, budget if budget is not None else 0.0)
            entry.held = True
            try:
                yield key
            finally:
                entry.held = False
                entry.lock.release()
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0 and self._locks.get(key) is entry:
                    del self._locks[key]

    def is_locked(self, key: ResourceKey) -> bool:
        with self._guard:
            entry = self._locks.get(key)
            return bool(entry and entry.held)

    def held_keys(self) -> List[ResourceKey]:
        with self._guard:
            return [key for key, entry in self._locks.items() if entry.held]

    def shutdown(self) -> None:
        """Refuse new acquisitions and drop idle entries.

        Callers still inside an ``acquire`` block release normally on exit.
        """
        with self._guard:
            if self._closed:
                return
            self._closed = True
            in_flight = [key for key, entry in self._locks.items() if entry.users]
            self._locks = {key: entry for key, entry in self._locks.items() if entry.users}
        if in_flight:
            LOGGER.warning("Lock manager shut down with %d key(s) in flight", len(in_flight))
        else:
            LOGGER.debug("Lock manager shut down")

    def __enter__(self) -> "LockManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
