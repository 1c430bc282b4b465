"""One client connection: reads a request, builds the response and sends it."""

import os
import threading

from .buffer import Buffer
from .httprequest import HttpRequest
from .httpresponse import HttpResponse
from .log import log_debug, log_info

_WRITE_AGAIN_THRESHOLD = 10240


class HttpConn:
    """A client socket with its read and write buffers, request and response.

    ``is_et``, ``src_dir`` and ``user_count`` are shared by every connection:
    edge-triggered reading, the resource directory, and the number of open
    connections.
    """

    is_et = False
    src_dir = ""
    user_count = 0
    _count_lock = threading.Lock()

    def __init__(self):
        self._sock = None
        self._fd = -1
        self._addr = ("", 0)
        self._closed = True
        self._request = HttpRequest()
        self._response = HttpResponse()
        self._read_buff = Buffer()
        self._write_buff = Buffer()
        self._file_view = None
        self._file_pos = 0

    def init(self, sock, addr):
        """Take over the connected socket ``sock`` whose peer address is ``addr``."""
        fd = sock.fileno()
        if fd <= 0:
            raise ValueError("invalid socket descriptor")
        with HttpConn._count_lock:
            HttpConn.user_count += 1
        self._sock = sock
        self._fd = fd
        self._addr = tuple(addr)
        self._write_buff.retrieve_all()
        self._read_buff.retrieve_all()
        self._closed = False
        log_info("Client[%d](%s:%d) in, userCount:%d", self._fd, self.ip, self.port, HttpConn.user_count)

    def close(self):
        """Release the mapped file and close the socket; safe to call twice."""
        self._release_file()
        self._response.unmap_file()
        if not self._closed:
            self._closed = True
            with HttpConn._count_lock:
                HttpConn.user_count -= 1
            self._sock.close()
            log_info("Client[%d](%s:%d) quit, UserCount:%d", self._fd, self.ip, self.port, HttpConn.user_count)

    def read(self):
        """Read available data into the read buffer and return how much was read.

        In edge-triggered mode reading goes on until the socket would block.
        Raises EOFError when the peer has closed, OSError on other failures.
        """
        total = 0
        while True:
            try:
                count = self._read_buff.read_fd(self._fd)
            except BlockingIOError:
                return total
            if count == 0:
                raise EOFError("peer closed the connection")
            total += count
            if not self.is_et:
                return total

    def process(self):
        """Parse the buffered request and prepare the response; False if nothing was read."""
        self._release_file()
        self._request.init()
        if self._read_buff.readable_bytes() <= 0:
            return False
        if self._request.parse(self._read_buff):
            log_debug("%s", self._request.path)
            self._response.init(self.src_dir, self._request.path, self._request.is_keep_alive(), 200)
        else:
            self._response.init(self.src_dir, self._request.path, False, 400)

        self._response.make_response(self._write_buff)
        mapped = self._response.file()
        if self._response.file_len() > 0 and mapped is not None:
            self._file_view = memoryview(mapped)
            self._file_pos = 0
        parts = 2 if self._file_view is not None else 1
        log_debug("filesize:%d, %d  to %d", self._response.file_len(), parts, self.to_write_bytes())
        return True

    def write(self):
        """Send the response head and file body; return the count of the last write.

        In edge-triggered mode, or while much is left, writing goes on.
        Raises OSError (BlockingIOError when the socket is full).
        """
        count = -1
        while True:
            header = self._write_buff.peek()
            count = self._writev(header)
            if count <= 0:
                break
            if count > len(header):
                self._file_pos += count - len(header)
                if header:
                    self._write_buff.retrieve_all()
            else:
                self._write_buff.retrieve(count)
            if not (self.is_et or self.to_write_bytes() > _WRITE_AGAIN_THRESHOLD):
                break
        return count

    @property
    def fd(self):
        return self._fd

    @property
    def ip(self):
        return self._addr[0]

    @property
    def port(self):
        return self._addr[1]

    @property
    def is_closed(self):
        return self._closed

    def to_write_bytes(self):
        """Bytes of the response still to be sent."""
        return self._write_buff.readable_bytes() + self._file_remaining()

    def is_keep_alive(self):
        return self._request.is_keep_alive()

    def _file_remaining(self):
        if self._file_view is None:
            return 0
        return len(self._file_view) - self._file_pos

    def _writev(self, header):
        if self._file_view is None:
            return os.writev(self._fd, [header])
        with self._file_view[self._file_pos:] as chunk:
            return os.writev(self._fd, [header, chunk])

    def _release_file(self):
        if self._file_view is not None:
            self._file_view.release()
            self._file_view = None
        self._file_pos = 0