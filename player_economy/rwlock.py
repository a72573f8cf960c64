"""Re-entrant read-write lock guarding economy state."""

import threading
import time
from contextlib import contextmanager
from typing import Dict, Optional


class RWLock:
    """
    A re-entrant Read-Write Lock.

    Allows multiple concurrent readers OR a single writer, with
    writer-preference to prevent writer starvation. The thread holding the
    write lock may re-acquire it and may also take read locks, so an
    announcement handler can call back into the engine mid-operation. A
    reader cannot upgrade to a writer.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._readers: Dict[int, int] = {}
        self._writers_waiting = 0
        self._writer: Optional[int] = None
        self._write_depth = 0

    def _wait(self, deadline: Optional[float]) -> bool:
        if deadline is None:
            self._changed.wait()
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        self._changed.wait(timeout=remaining)
        return True

    def acquire_read(self, timeout: Optional[float] = None) -> bool:
        """Acquire read lock. Blocks if another thread writes or waits to write."""
        me = threading.get_ident()
        with self._lock:
            if self._writer == me or me in self._readers:
                self._readers[me] = self._readers.get(me, 0) + 1
                return True

            deadline = time.monotonic() + timeout if timeout is not None else None
            while self._writer is not None or self._writers_waiting > 0:
                if not self._wait(deadline):
                    return False

            self._readers[me] = 1
            return True

    def release_read(self):
        """Release read lock."""
        me = threading.get_ident()
        with self._lock:
            depth = self._readers.get(me, 0)
            if depth == 0:
                raise RuntimeError("Read lock released by a thread that does not hold it")
            if depth == 1:
                del self._readers[me]
            else:
                self._readers[me] = depth - 1
            if not self._readers:
                self._changed.notify_all()

    def acquire_write(self, timeout: Optional[float] = None) -> bool:
        """Acquire write lock. Blocks until other readers and writers release."""
        me = threading.get_ident()
        with self._lock:
            if self._writer == me:
                self._write_depth += 1
                return True
            if me in self._readers:
                raise RuntimeError("Cannot upgrade a read lock to a write lock")

            self._writers_waiting += 1
            try:
                deadline = time.monotonic() + timeout if timeout is not None else None
                while self._readers or self._writer is not None:
                    if not self._wait(deadline):
                        return False

                self._writer = me
                self._write_depth = 1
                return True
            finally:
                self._writers_waiting -= 1
                if self._writer != me:
                    # A timed-out writer may have been holding readers back
                    self._changed.notify_all()

    def release_write(self):
        """Release write lock."""
        me = threading.get_ident()
        with self._lock:
            if self._writer != me:
                raise RuntimeError("Write lock released by a thread that does not hold it")
            self._write_depth -= 1
            if self._write_depth == 0:
                self._writer = None
                self._changed.notify_all()

    @property
    def write_held(self) -> bool:
        """True if the calling thread holds the write lock."""
        return self._writer == threading.get_ident()

    @contextmanager
    def read(self):
        """Context manager for read lock."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self):
        """Context manager for write lock."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
