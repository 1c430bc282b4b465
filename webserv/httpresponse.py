"""Builds HTTP responses for static files under a resource directory."""

import mmap
import os
import stat

from .log import log_debug

SUFFIX_TYPE = {
    ".html": "text/html",
    ".xml": "text/xml",
    ".xhtml": "application/xhtml+xml",
    ".txt": "text/plain",
    ".rtf": "application/rtf",
    ".pdf": "application/pdf",
    ".word": "application/nsword",
    ".png": "image/png",
    ".gif": "image/gif",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".au": "audio/basic",
    ".mpeg": "video/mpeg",
    ".mpg": "video/mpeg",
    ".avi": "video/x-msvideo",
    ".gz": "application/x-gzip",
    ".tar": "application/x-tar",
    ".css": "text/css ",
    ".js": "text/javascript ",
}

CODE_STATUS = {
    200: "OK",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
}

CODE_PATH = {
    400: "/400.html",
    403: "/403.html",
    404: "/404.html",
}


class HttpResponse:
    """Status line, headers and a memory-mapped file body for one request."""

    def __init__(self):
        self._code = -1
        self._src_dir = ""
        self._path = ""
        self._is_keep_alive = False
        self._file = None
        self._stat = None

    def init(self, src_dir, path, is_keep_alive=False, code=-1):
        """Prepare for a new response for ``path`` under ``src_dir``."""
        if not src_dir:
            raise ValueError("src_dir must not be empty")
        self.unmap_file()
        self._code = code
        self._is_keep_alive = is_keep_alive
        self._path = path
        self._src_dir = src_dir
        self._stat = None

    def make_response(self, buff):
        """Resolve the status code and append the response head to ``buff``."""
        self._stat = self._stat_of(self._full_path())
        if self._stat is None or stat.S_ISDIR(self._stat.st_mode):
            self._code = 404
        elif not self._stat.st_mode & stat.S_IROTH:
            self._code = 403
        elif self._code == -1:
            self._code = 200
        self._error_html()
        self._add_state_line(buff)
        self._add_header(buff)
        self._add_content(buff)

    def unmap_file(self):
        """Release the mapped file body, if any."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def file(self):
        """The mapped file body, or None."""
        return self._file

    def file_len(self):
        """Size in bytes of the file last looked at."""
        return self._stat.st_size if self._stat is not None else 0

    def code(self):
        return self._code

    def error_content(self, buff, message):
        """Append a small HTML error page with its Content-length to ``buff``."""
        status = CODE_STATUS.get(self._code, "Bad Request")
        body = (
            "<html><title>Error</title>"
            '<body bgcolor="ffffff">'
            f"{self._code} : {status}\n"
            f"<p>{message}</p>"
            "<hr><em>TinyWebServer</em></body></html>"
        )
        encoded = body.encode("utf-8")
        buff.append(f"Content-length: {len(encoded)}\r\n\r\n")
        buff.append(encoded)

    def _full_path(self):
        return self._src_dir + self._path

    @staticmethod
    def _stat_of(path):
        try:
            return os.stat(path)
        except OSError:
            return None

    def _error_html(self):
        error_path = CODE_PATH.get(self._code)
        if error_path is not None:
            self._path = error_path
            self._stat = self._stat_of(self._full_path())

    def _add_state_line(self, buff):
        status = CODE_STATUS.get(self._code)
        if status is None:
            self._code = 400
            status = CODE_STATUS[400]
        buff.append(f"HTTP/1.1 {self._code} {status}\r\n")

    def _add_header(self, buff):
        buff.append("Connection: ")
        if self._is_keep_alive:
            buff.append("keep-alive\r\n")
            buff.append("keep-alive: max=6, timeout=120\r\n")
        else:
            buff.append("close\r\n")
        buff.append(f"Content-type: {self._file_type()}\r\n")

    def _file_type(self):
        idx = self._path.rfind(".")
        if idx < 0:
            return "text/plain"
        return SUFFIX_TYPE.get(self._path[idx:], "text/plain")

    def _add_content(self, buff):
        full_path = self._full_path()
        try:
            with open(full_path, "rb") as src:
                log_debug("file path %s", full_path)
                size = self._stat.st_size if self._stat is not None else 0
                mapped = mmap.mmap(src.fileno(), size, access=mmap.ACCESS_READ)
        except (OSError, ValueError):
            self.error_content(buff, "File NotFound!")
            return
        self._file = mapped
        buff.append(f"Content-length: {self.file_len()}\r\n\r\n")