import queue
from typing import Any


class LatestSlot:
    """Single-slot channel where the newest value always wins.

    The producer never blocks: publishing into a full slot discards the stale
    value. Meant for one producer (the render thread) and one consumer (a GUI).
    """

    def __init__(self):
        self._queue: queue.Queue = queue.Queue(maxsize=1)
        self.dropped = 0

    def publish(self, value: Any) -> None:
        while True:
            try:
                self._queue.put_nowait(value)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def take(self, timeout: float | None = None) -> Any:
        """Returns the pending value, or None if nothing arrived within `timeout` seconds."""
        try:
            if timeout is None:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
