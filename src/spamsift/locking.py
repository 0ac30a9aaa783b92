"""Reader/writer lock guarding shared classifier state."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers waiting for the lock block newly arriving readers, so a steady
    stream of readers cannot starve training. The lock is not reentrant.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """Hold the lock in shared mode for the duration of the block."""

        with self._condition:
            while self._writer or self._waiting_writers:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if not self._readers:
                    self._condition.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Hold the lock exclusively for the duration of the block."""

        with self._condition:
            self._waiting_writers += 1
            acquired = False
            try:
                while self._writer or self._readers:
                    self._condition.wait()
                acquired = True
            finally:
                self._waiting_writers -= 1
                if not acquired:
                    # Readers queued behind this writer may now proceed.
                    self._condition.notify_all()
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()

    @property
    def readers(self) -> int:
        with self._condition:
            return self._readers

    @property
    def writing(self) -> bool:
        with self._condition:
            return self._writer


__all__ = ["ReadWriteLock"]
