"""Fixed-size pool of worker threads draining a shared task queue."""

import logging
import threading
from collections import deque

_logger = logging.getLogger(__name__)


class ThreadPool:
    """Runs submitted callables on a fixed number of daemon threads."""

    def __init__(self, thread_count=8):
        if thread_count <= 0:
            raise ValueError("thread_count must be positive")
        self._cond = threading.Condition()
        self._tasks = deque()
        self._closed = False
        self._workers = [
            threading.Thread(target=self._work, name=f"threadpool-{i}", daemon=True)
            for i in range(thread_count)
        ]
        for worker in self._workers:
            worker.start()

    def add_task(self, task):
        """Queue ``task`` to be called with no arguments on a worker thread."""
        with self._cond:
            if self._closed:
                raise RuntimeError("thread pool is closed")
            self._tasks.append(task)
            self._cond.notify()

    def close(self):
        """Stop accepting tasks; workers finish the queue, then exit and are joined."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        current = threading.current_thread()
        for worker in self._workers:
            if worker is not current:
                worker.join()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _work(self):
        while True:
            with self._cond:
                while not self._tasks and not self._closed:
                    self._cond.wait()
                if not self._tasks:
                    return
                task = self._tasks.popleft()
            try:
                task()
            except Exception:
                _logger.exception("task raised")