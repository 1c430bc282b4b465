"""Bounded blocking double-ended queue for producer/consumer hand-off."""

import threading
from collections import deque


class BlockQueue:
    """A bounded queue whose producers wait when full and consumers wait when empty."""

    def __init__(self, maxsize=1000):
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self._deq = deque()
        self._capacity = maxsize
        self._closed = False
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    def __len__(self):
        with self._lock:
            return len(self._deq)

    def empty(self):
        with self._lock:
            return not self._deq

    def full(self):
        with self._lock:
            return len(self._deq) >= self._capacity

    def push_back(self, item):
        """Append ``item``, waiting while the queue is full."""
        with self._not_full:
            while len(self._deq) >= self._capacity:
                self._not_full.wait()
            self._deq.append(item)
            self._not_empty.notify()

    def push_front(self, item):
        """Prepend ``item``, waiting while the queue is full."""
        with self._not_full:
            while len(self._deq) >= self._capacity:
                self._not_full.wait()
            self._deq.appendleft(item)
            self._not_empty.notify()

    def pop(self, timeout=None):
        """Remove and return the front item.

        Waits while the queue is empty. Returns None once the queue is closed,
        or, when ``timeout`` (seconds) is given, when a wait times out.
        """
        with self._not_empty:
            if timeout is None:
                while not self._closed and not self._deq:
                    self._not_empty.wait()
                if self._closed:
                    return None
            else:
                while not self._deq:
                    if not self._not_empty.wait(timeout):
                        return None
                    if self._closed:
                        return None
            item = self._deq.popleft()
            self._not_full.notify()
            return item

    def clear(self):
        with self._lock:
            self._deq.clear()

    def front(self):
        with self._lock:
            if not self._deq:
                raise IndexError("front of empty queue")
            return self._deq[0]

    def back(self):
        with self._lock:
            if not self._deq:
                raise IndexError("back of empty queue")
            return self._deq[-1]

    def capacity(self):
        with self._lock:
            return self._capacity

    def flush(self):
        """Wake one waiting consumer."""
        with self._not_empty:
            self._not_empty.notify()

    def close(self):
        """Drop all items and wake every waiting producer and consumer."""
        with self._lock:
            self._deq.clear()
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()