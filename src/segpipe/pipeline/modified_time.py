"""
Modification-time bookkeeping for pipeline objects.

Every pipeline object carries a TimeStamp drawn from one process-wide
monotonic counter, so that comparing two stamps tells which object changed
last. A stage is stale when its own stamp (or any input's) is newer than the
stamp recorded when it last generated its output.
"""

import itertools
import threading


_counter = itertools.count(1)
_counter_lock = threading.Lock()


def _next_time() -> int:
    with _counter_lock:
        return next(_counter)


class TimeStamp:
    """Monotonic modification stamp; zero means never modified."""

    __slots__ = ("_time",)

    def __init__(self):
        self._time = 0

    def modified(self) -> None:
        self._time = _next_time()

    def get_time(self) -> int:
        return self._time

    def __int__(self):
        return self._time

    def __repr__(self):
        return f"TimeStamp({self._time})"


class ModifiedTimeMixin:
    """Gives a class a modified time and a ``modified()`` trigger."""

    def _init_modified_time(self) -> None:
        self._mtime = TimeStamp()
        self._mtime.modified()

    def modified(self) -> None:
        """Mark this object as changed, invalidating anything derived from it."""
        self._mtime.modified()

    def get_modified_time(self) -> int:
        return self._mtime.get_time()
