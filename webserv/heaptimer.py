"""Min-heap of per-connection timers keyed by id."""

import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass(order=True)
class TimerNode:
    """One timer: its id, its monotonic expiry time in seconds and its callback."""

    id: int = field(compare=False)
    expires: float
    callback: Callable[[], None] = field(compare=False)


class HeapTimer:
    """Timers ordered by expiry, addressable by id."""

    def __init__(self):
        self._heap = []
        self._ref = {}

    def __len__(self):
        return len(self._heap)

    def __contains__(self, id_):
        return id_ in self._ref

    def add(self, id_, timeout_ms, callback):
        """Add a timer, or reset the expiry and callback of an existing one."""
        if id_ < 0:
            raise ValueError("timer id must not be negative")
        expires = time.monotonic() + timeout_ms / 1000
        index = self._ref.get(id_)
        if index is not None:
            node = self._heap[index]
            node.expires = expires
            node.callback = callback
            self._fix(index)
        else:
            self._ref[id_] = len(self._heap)
            self._heap.append(TimerNode(id_, expires, callback))
            self._sift_up(len(self._heap) - 1)

    def adjust(self, id_, new_expires_ms):
        """Set the timer ``id_`` to expire ``new_expires_ms`` from now."""
        index = self._ref.get(id_)
        if index is None:
            raise KeyError(id_)
        self._heap[index].expires = time.monotonic() + new_expires_ms / 1000
        self._fix(index)

    def do_work(self, id_):
        """Remove the timer ``id_`` and run its callback; unknown ids are ignored."""
        index = self._ref.get(id_)
        if index is None:
            return
        node = self._remove(index)
        node.callback()

    def tick(self):
        """Remove every expired timer, running its callback."""
        while self._heap:
            node = self._heap[0]
            if self._remaining_ms(node) > 0:
                break
            self._remove(0)
            node.callback()

    def pop(self):
        """Remove and return the earliest timer without running its callback."""
        if not self._heap:
            raise IndexError("pop from empty timer")
        return self._remove(0)

    def get_next_tick(self):
        """Expire due timers, then return milliseconds until the next one, or -1."""
        self.tick()
        if not self._heap:
            return -1
        return max(0, self._remaining_ms(self._heap[0]))

    def clear(self):
        self._ref.clear()
        self._heap.clear()

    @staticmethod
    def _remaining_ms(node):
        return int((node.expires - time.monotonic()) * 1000)

    def _fix(self, index):
        if not self._sift_down(index, len(self._heap)):
            self._sift_up(index)

    def _sift_up(self, i):
        while i > 0:
            parent = (i - 1) // 2
            if self._heap[parent] > self._heap[i]:
                self._swap(i, parent)
                i = parent
            else:
                break

    def _sift_down(self, i, n):
        index = i
        child = 2 * index + 1
        while child < n:
            if child + 1 < n and self._heap[child + 1] < self._heap[child]:
                child += 1
            if self._heap[child] < self._heap[index]:
                self._swap(index, child)
                index = child
                child = 2 * child + 1
            else:
                break
        return index > i

    def _swap(self, i, j):
        heap = self._heap
        heap[i], heap[j] = heap[j], heap[i]
        self._ref[heap[i].id] = i
        self._ref[heap[j].id] = j

    def _remove(self, index):
        last = len(self._heap) - 1
        if index < last:
            self._swap(index, last)
        node = self._heap.pop()
        del self._ref[node.id]
        if index < len(self._heap):
            self._fix(index)
        return node