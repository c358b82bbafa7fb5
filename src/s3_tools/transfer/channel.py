"""A bounded hand-off between one producer and one consumer.

``put`` blocks while the channel is full, which is how a fast network
source is paused until a slow sink catches up; ``get`` blocks while it is
empty. Closing the channel releases a blocked producer with
``ChannelClosed`` so that a failing consumer can stop the pump.
"""

import queue
import threading
from typing import Any, Optional


class ChannelClosed(Exception):
    """Raised to a producer once the consumer has closed the channel."""

    pass


class BoundedChannel:
    """Blocking, size-bounded channel with an observable backpressure flag."""

    def __init__(self, maxsize: int, poll_interval: float = 0.05):
        if maxsize < 1:
            raise ValueError(f"maxsize must be at least 1, got: {maxsize}")

        self.maxsize = maxsize
        self.poll_interval = poll_interval
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize)
        self._closed = threading.Event()

        # Written by the producer only
        self.backpressured = False
        self.backpressure_events = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, item: Any) -> None:
        """Block until ``item`` fits in the channel.

        Raises:
            ChannelClosed: If the channel is, or becomes, closed
        """
        if self._closed.is_set():
            raise ChannelClosed()

        if self._queue.full():
            self.backpressured = True
            self.backpressure_events += 1

        try:
            while True:
                try:
                    self._queue.put(item, timeout=self.poll_interval)
                except queue.Full:
                    if self._closed.is_set():
                        raise ChannelClosed()
                    continue

                # close() drains the queue, which can let a blocked put through
                if self._closed.is_set():
                    raise ChannelClosed()
                return
        finally:
            self.backpressured = False

    def get(self, timeout: Optional[float] = None) -> Any:
        """Block until an item is available and return it."""
        return self._queue.get(timeout=timeout)

    def close(self) -> None:
        """Close the channel and drop anything still buffered."""
        self._closed.set()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
