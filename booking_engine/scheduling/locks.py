from contextlib import contextmanager
from threading import Lock
from typing import Iterator


class ProviderLockRegistry:
    """One mutex per provider, created on first use.

    Held across "read overlapping appointments, check, write, commit" so two
    bookings for the same provider cannot interleave inside this process.
    Different providers never share a lock.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[int, Lock] = {}

    def _lock_for(self, provider_id: int) -> Lock:
        with self._guard:
            lock = self._locks.get(provider_id)
            if lock is None:
                lock = Lock()
                self._locks[provider_id] = lock
            return lock

    @contextmanager
    def hold(self, provider_id: int) -> Iterator[None]:
        lock = self._lock_for(provider_id)
        with lock:
            yield


provider_locks = ProviderLockRegistry()
