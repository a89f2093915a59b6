"""Strict first-in first-out mutual exclusion for store files."""

import os
import threading
from contextlib import contextmanager
from typing import Iterator


class FifoLock:
    """Ticket lock granting access in arrival order.

    ``threading.Lock`` makes no fairness promise, so waiters take a ticket
    and are served strictly by ticket number.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._next_ticket = 0
        self._serving = 0
        # Tickets whose waiter gave up before being served.
        self._abandoned: set[int] = set()

    def acquire(self) -> None:
        with self._condition:
            ticket = self._next_ticket
            self._next_ticket += 1
            try:
                while ticket != self._serving:
                    self._condition.wait()
            except BaseException:
                if ticket == self._serving:
                    self._advance()
                else:
                    self._abandoned.add(ticket)
                raise

    def release(self) -> None:
        with self._condition:
            self._advance()

    def _advance(self) -> None:
        # Caller holds the condition.
        self._serving += 1
        while self._serving in self._abandoned:
            self._abandoned.discard(self._serving)
            self._serving += 1
        self._condition.notify_all()

    @property
    def pending(self) -> int:
        """Number of holders plus waiters."""
        with self._condition:
            return self._next_ticket - self._serving - len(self._abandoned)

    @contextmanager
    def held(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()


_registry_guard = threading.Lock()
_locks: dict[str, FifoLock] = {}


def lock_for(path: str | os.PathLike) -> FifoLock:
    """Return the process-wide lock for a store file path.

    Every store pointing at the same file shares one queue.
    """
    key = os.path.realpath(os.fspath(path))
    with _registry_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = FifoLock()
        return lock
