"""Background thread applying accepted ledger events off the request path."""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from marketsync.domain.indexing import EventIndexer

log = logging.getLogger(__name__)

_STOP = object()


class EventQueueWorker:
    """Single consumer thread calling ``EventIndexer.process_safely`` per signature.

    A full queue drops the signature with a warning; the stored row stays
    unprocessed and the pending-events sweep picks it up.
    """

    def __init__(self, indexer: EventIndexer, *, maxsize: int = 10_000) -> None:
        self._indexer = indexer
        self._queue: queue.Queue[object] = queue.Queue(maxsize=maxsize)
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.processed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._thread = threading.Thread(
                target=self._run, name="ledger-event-worker", daemon=True
            )
            self._thread.start()
        log.info("Ledger event worker started")

    def stop(self, timeout: float | None = 10.0) -> None:
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._queue.put(_STOP)
            thread.join(timeout)
            if thread.is_alive():
                log.warning("Ledger event worker did not stop within %.1fs", timeout or 0)
            self._thread = None
        log.info("Ledger event worker stopped")

    def submit(self, signatures: Iterable[str]) -> int:
        queued = 0
        for signature in signatures:
            try:
                self._queue.put_nowait(signature)
            except queue.Full:
                self.dropped += 1
                log.warning("Event queue full, %s left for the pending sweep", signature)
            else:
                queued += 1
        return queued

    def drain(self) -> None:
        """Block until everything queued so far was handled."""

        self._queue.join()

    def status(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "queued": self._queue.qsize(),
            "processed": self.processed,
            "dropped": self.dropped,
        }

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._indexer.process_safely(str(item))
                self.processed += 1
            finally:
                self._queue.task_done()
