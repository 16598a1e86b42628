from __future__ import annotations

import logging
import math
import queue
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from uploadaudit.records.status import StatusStore

logger = logging.getLogger(__name__)

_CLOSED = None


class ProgressReporter:
    """Turn fractional progress samples into status updates for one file.

    Every sample is written; nothing is batched and samples are not assumed
    to be monotonic.
    """

    def __init__(
        self,
        store: StatusStore,
        filename: str,
        total_size: int,
        listener: Callable[[float], None] | None = None,
    ) -> None:
        self.store = store
        self.filename = filename
        self.total_size = total_size
        self.listener = listener

    def report(self, value: float) -> None:
        percent = math.floor(value * 100)
        transferred = math.floor(value * self.total_size)
        self.store.update(self.filename, percent, transferred, self.total_size)
        if self.listener:
            try:
                self.listener(value)
            except Exception:
                logger.exception("Progress listener failed for %s", self.filename)


class ProgressChannel:
    """Unbounded queue of progress samples drained by a background thread.

    ``publish`` never blocks the transfer. Leaving the context closes the
    channel and waits until every published sample has been reported.
    """

    def __init__(self, reporter: ProgressReporter) -> None:
        self.reporter = reporter
        self._queue: queue.SimpleQueue[float | None] = queue.SimpleQueue()
        self._thread = threading.Thread(
            target=self._drain,
            name=f"progress-{reporter.filename}",
            daemon=True,
        )

    def __enter__(self) -> ProgressChannel:
        self._thread.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._queue.put(_CLOSED)
        self._thread.join()

    def publish(self, value: float) -> None:
        self._queue.put(value)

    def _drain(self) -> None:
        while True:
            value = self._queue.get()
            if value is _CLOSED:
                break
            try:
                self.reporter.report(value)
            except OSError as exc:
                logger.warning(
                    "Could not write progress for %s: %s",
                    self.reporter.filename, exc,
                )
