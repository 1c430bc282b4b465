"""Growable byte buffer with separate read and write positions."""

import os

_EXTRA_READ = 65535


class Buffer:
    """A byte buffer that is appended at the write end and consumed at the read end."""

    def __init__(self, init_size=1024):
        if init_size < 0:
            raise ValueError("buffer size must not be negative")
        self._buf = bytearray(init_size)
        self._read = 0
        self._write = 0

    def __len__(self):
        return self.readable_bytes()

    def writable_bytes(self):
        """Bytes that can be written without growing or compacting."""
        return len(self._buf) - self._write

    def readable_bytes(self):
        """Bytes waiting to be read."""
        return self._write - self._read

    def prependable_bytes(self):
        """Bytes already consumed at the front of the storage."""
        return self._read

    def peek(self):
        """Return the readable data without consuming it."""
        return bytes(self._buf[self._read:self._write])

    def ensure_writable(self, length):
        """Make sure at least ``length`` bytes can be written."""
        if length > self.writable_bytes():
            self._make_space(length)

    def has_written(self, length):
        """Advance the write position after data was placed directly."""
        if length < 0 or length > self.writable_bytes():
            raise ValueError("write position out of range")
        self._write += length

    def retrieve(self, length):
        """Consume ``length`` readable bytes."""
        if length < 0 or length > self.readable_bytes():
            raise ValueError("cannot retrieve more than is readable")
        self._read += length

    def retrieve_until(self, end):
        """Consume the readable data up to offset ``end`` from the read position."""
        self.retrieve(end)

    def retrieve_all(self):
        """Discard everything and zero the storage."""
        self._buf[:] = bytes(len(self._buf))
        self._read = self._write = 0

    def retrieve_all_to_str(self):
        """Consume all readable data and return it as text."""
        text = self.peek().decode("utf-8", errors="replace")
        self.retrieve_all()
        return text

    def append(self, data):
        """Append bytes, text (UTF-8 encoded) or the readable part of another buffer."""
        if isinstance(data, Buffer):
            chunk = data.peek()
        elif isinstance(data, str):
            chunk = data.encode("utf-8")
        else:
            chunk = memoryview(data).tobytes()
        self.ensure_writable(len(chunk))
        self._buf[self._write:self._write + len(chunk)] = chunk
        self._write += len(chunk)

    def read_fd(self, fd):
        """Read from ``fd`` into the buffer, growing it if needed; return the count read."""
        writable = self.writable_bytes()
        extra = bytearray(_EXTRA_READ)
        with memoryview(self._buf) as view, view[self._write:] as tail:
            count = os.readv(fd, [tail, extra])
        if count <= writable:
            self._write += count
        else:
            self._write = len(self._buf)
            self.append(extra[:count - writable])
        return count

    def write_fd(self, fd):
        """Write the readable data to ``fd`` and consume what was written."""
        count = os.write(fd, self.peek())
        self._read += count
        return count

    def _make_space(self, length):
        if self.writable_bytes() + self.prependable_bytes() < length:
            grow = self._write + length + 1 - len(self._buf)
            self._buf.extend(bytes(grow))
        else:
            readable = self.readable_bytes()
            self._buf[0:readable] = self._buf[self._read:self._write]
            self._read = 0
            self._write = readable