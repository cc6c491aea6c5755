"""Serial request scheduler: one automation session at a time, FIFO order."""

import threading
from collections import deque
from concurrent.futures import Future
from typing import Deque, Optional

from loguru import logger

from gi_verifier.cache import InMemoryResultCache, ResultCache
from gi_verifier.models import ExtractionResult, PendingRequest


class SerialScheduler:
    """Queues product codes and drains them through the orchestrator one by one.

    ``submit`` may be called from any number of threads. A single worker thread
    exists while the queue is being drained; ``_draining`` and ``_queue`` are
    only touched under ``_lock``, so at most one orchestrator run (and therefore
    one browser session) is active at any instant.

    Duplicate submissions of a code that is still in flight are not merged:
    each becomes its own queued request and its own browser session.
    """

    def __init__(self, orchestrator, cache: Optional[ResultCache] = None):
        self.orchestrator = orchestrator
        self.cache = cache if cache is not None else InMemoryResultCache()
        self._queue: Deque[PendingRequest] = deque()
        self._draining = False
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._worker: Optional[threading.Thread] = None

    @property
    def pending_count(self) -> int:
        """Requests queued but not yet started."""
        with self._lock:
            return len(self._queue)

    @property
    def is_draining(self) -> bool:
        with self._lock:
            return self._draining

    def submit(self, product_code: str) -> "Future[ExtractionResult]":
        """Return a future for the final result of ``product_code``.

        Cache hits come back as an already-completed future and never reach
        the queue.
        """
        if not isinstance(product_code, str) or not product_code.strip():
            raise ValueError("product_code must be a non-empty string")

        cached = self.cache.get(product_code)
        if cached is not None:
            logger.info(f"Cache HIT for {product_code}")
            future: Future = Future()
            future.set_result(cached)
            return future

        request = PendingRequest(product_code)
        # Queued requests cannot be cancelled; the drain loop always completes them.
        request.future.set_running_or_notify_cancel()
        with self._lock:
            self._queue.append(request)
            logger.info(f"Cache MISS for {product_code}, queued (queue length: {len(self._queue)})")
        self._drain()
        return request.future

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the queue is empty and no request is running."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._draining and not self._queue, timeout=timeout)

    def _drain(self) -> None:
        with self._lock:
            if self._draining:
                logger.debug("Already draining, request will be picked up in order")
                return
            if not self._queue:
                return
            self._draining = True
            self._worker = threading.Thread(target=self._drain_loop, name="gi-verifier-drain", daemon=True)
            self._worker.start()

    def _drain_loop(self) -> None:
        while True:
            with self._lock:
                if not self._queue:
                    self._draining = False
                    self._idle.notify_all()
                    logger.debug("Queue is now empty")
                    return
                request = self._queue.popleft()
                remaining = len(self._queue)

            logger.info(f"Processing {request.product_code} (remaining in queue: {remaining})")
            try:
                self._process(request)
            except Exception as e:
                logger.exception(f"Could not complete request for {request.product_code}")
                if not request.future.done():
                    request.reject(e)

    def _process(self, request: PendingRequest) -> None:
        try:
            result = self.orchestrator.run(request.product_code)
            self.cache.put(request.product_code, result)
        except Exception as e:
            logger.error(f"Verification failed for {request.product_code}: {e}")
            request.reject(e)
            return

        request.resolve(result)
        logger.info(f"Cached result for {request.product_code} (cache size: {len(self.cache)})")
