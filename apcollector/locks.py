"""Per-key mutual exclusion.

Used to serialise read-modify-write of a single submission and to
single-flight archive builds for one (room, category) pair, without a
global lock that would stall unrelated rooms.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, Tuple


class KeyedLock:
    """A registry of ``threading.Lock`` objects created on demand per key.

    Entries are reference counted and dropped once no thread holds or waits
    on them, so the registry does not grow with every room ever seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, Tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock, refs = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, refs + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                _, refs = self._locks[key]
                if refs <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, refs - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
