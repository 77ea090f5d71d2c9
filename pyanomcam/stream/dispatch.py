from __future__ import annotations

import queue
from typing import Callable


class QueueDispatcher:
    """Marshal callbacks from worker threads onto the thread that calls `drain()`.

    OpenCV windows must be updated from the thread that created them; the
    display loop drains this queue between `cv2.waitKey` calls.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[Callable[[], None]]" = queue.Queue()

    def __call__(self, fn: Callable[[], None]) -> None:
        self._queue.put(fn)

    def drain(self) -> int:
        """Run every pending callback; returns how many ran."""

        ran = 0
        while True:
            try:
                fn = self._queue.get_nowait()
            except queue.Empty:
                return ran
            fn()
            ran += 1
