import logging
import queue
import threading
import time
from concurrent.futures import Future

from django.conf import settings
from django.db import close_old_connections

from catalog.exceptions import QueueFull
from catalog.updater import get_updater

logger = logging.getLogger(__name__)

QUEUE_PACING = getattr(settings, 'CATALOG_QUEUE_PACING', 1.0)
QUEUE_MAXSIZE = getattr(settings, 'CATALOG_QUEUE_MAXSIZE', 100)

_STOP = object()


class MutationQueue:
    """Runs mutations one at a time, in submission order, on a single worker.

    Every mutation rewrites the whole document, so two in-flight mutations
    from this process would race on the same revision.
    """

    def __init__(self, updater, pacing=None, maxsize=None):
        self.updater = updater
        self.pacing = QUEUE_PACING if pacing is None else pacing
        self._requests = queue.Queue(maxsize=QUEUE_MAXSIZE if maxsize is None else maxsize)
        self._worker = None
        self._lock = threading.Lock()

    def start(self):
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(target=self._run, name='catalog-mutations', daemon=True)
                self._worker.start()

    def stop(self, timeout=None):
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is not None:
            self._requests.put(_STOP)
            worker.join(timeout)

    def submit(self, action, data) -> Future:
        self.start()
        future = Future()
        try:
            self._requests.put_nowait((future, action, data))
        except queue.Full:
            raise QueueFull("Too many pending product updates, try again shortly") from None
        logger.debug("Queued %s (%d pending)", action, self._requests.qsize())
        return future

    def join(self):
        self._requests.join()

    def _run(self):
        while True:
            item = self._requests.get()
            if item is _STOP:
                self._requests.task_done()
                break

            future, action, data = item
            try:
                if future.set_running_or_notify_cancel():
                    self._process(future, action, data)
            finally:
                self._requests.task_done()

            if self.pacing:
                time.sleep(self.pacing)

    def _process(self, future, action, data):
        try:
            result = self.updater.apply(action, data)
        except Exception as exc:
            logger.warning("%s failed: %s", action, exc)
            future.set_exception(exc)
        else:
            future.set_result(result)
        finally:
            close_old_connections()


_mutation_queue = None
_mutation_queue_lock = threading.Lock()


def get_mutation_queue():
    global _mutation_queue
    if _mutation_queue is None:
        with _mutation_queue_lock:
            if _mutation_queue is None:
                mutation_queue = MutationQueue(get_updater())
                mutation_queue.start()
                _mutation_queue = mutation_queue
    return _mutation_queue
