from __future__ import annotations

import threading

class StopFlag:
    """One-way latch shared between the owning thread and a task worker.

    Once set it never clears. Stage code must read ``is_set`` each time it
    needs the value instead of caching it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def __bool__(self) -> bool:
        return self._event.is_set()

    def as_cancel_cb(self):
        return self._event.is_set
