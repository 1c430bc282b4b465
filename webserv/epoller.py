"""Thin wrapper around epoll that keeps the events of the last wait."""

import select


class Epoller:
    """Registers descriptors with epoll and exposes the ready events by index."""

    def __init__(self, max_event=1024):
        if max_event <= 0:
            raise ValueError("max_event must be positive")
        self._epoll = select.epoll()
        self._max_event = max_event
        self._events = []

    def add_fd(self, fd, events):
        """Register ``fd`` for ``events``; False if it cannot be added."""
        if fd < 0:
            return False
        try:
            self._epoll.register(fd, events)
        except OSError:
            return False
        return True

    def mod_fd(self, fd, events):
        """Change the events watched on ``fd``; False on failure."""
        if fd < 0:
            return False
        try:
            self._epoll.modify(fd, events)
        except OSError:
            return False
        return True

    def del_fd(self, fd):
        """Stop watching ``fd``; False on failure."""
        if fd < 0:
            return False
        try:
            self._epoll.unregister(fd)
        except OSError:
            return False
        return True

    def wait(self, timeout_ms=-1):
        """Wait for events; a negative timeout blocks. Returns the number of events."""
        timeout = timeout_ms / 1000 if timeout_ms >= 0 else -1
        self._events = self._epoll.poll(timeout, self._max_event)
        return len(self._events)

    def get_event_fd(self, i):
        return self._event(i)[0]

    def get_events(self, i):
        return self._event(i)[1]

    def close(self):
        self._epoll.close()

    def _event(self, i):
        if not 0 <= i < len(self._events):
            raise IndexError("event index out of range")
        return self._events[i]