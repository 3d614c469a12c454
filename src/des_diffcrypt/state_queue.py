import threading
from typing import Generic, Optional, TypeVar


T = TypeVar("T")

_EMPTY = object()


class SingleSlotQueue(Generic[T]):
    """
    Hands the newest attack snapshot from the solver thread to the display loop.

    The slot holds one item. Publishing over an unread item replaces it, so a
    slow reader only ever sees the latest state. Closing wakes every reader;
    an item still in the slot is delivered before `get` starts returning None.
    """

    def __init__(self) -> None:
        self._ready = threading.Condition()
        self._slot: object = _EMPTY
        self._closed = False
        self._superseded = 0

    @property
    def closed(self) -> bool:
        with self._ready:
            return self._closed

    @property
    def superseded(self) -> int:
        """Items replaced before anyone read them."""
        with self._ready:
            return self._superseded

    def publish(self, item: T) -> bool:
        """Put `item` in the slot. Returns False once the queue is closed."""
        with self._ready:
            if self._closed:
                return False
            if self._slot is not _EMPTY:
                self._superseded += 1
            self._slot = item
            self._ready.notify()
            return True

    def close(self) -> None:
        with self._ready:
            self._closed = True
            self._ready.notify_all()

    def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """Wait for the next item. None means closed and drained."""
        with self._ready:
            if not self._ready.wait_for(lambda: self._slot is not _EMPTY or self._closed, timeout):
                raise TimeoutError(f"no snapshot within {timeout}s")
            item, self._slot = self._slot, _EMPTY
            return None if item is _EMPTY else item
