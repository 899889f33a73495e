"""
Per-vacancy mutual exclusion.

generate, lock and unlock for one vacancy run one at a time; different
vacancies proceed independently.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class VacancyLocks:
    """Registry of one lock per vacancy id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, vacancy_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(vacancy_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[vacancy_id] = lock
            return lock

    @contextmanager
    def hold(self, vacancy_id: str) -> Iterator[None]:
        """Hold the vacancy's lock for the duration of the block."""
        lock = self._lock_for(vacancy_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
