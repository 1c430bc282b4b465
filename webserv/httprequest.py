"""Incremental parser for HTTP/1.x requests held in a Buffer."""

import re
from enum import Enum

import pymysql

from .log import log_debug, log_error, log_info
from .sqlconnpool import SqlConnPool

_CRLF = b"\r\n"
_REQUEST_LINE = re.compile(r"([^ ]*) ([^ ]*) HTTP/([^ ]*)")
_HEADER_LINE = re.compile(r"([^:]*): ?(.*)")
_FORM_TYPE = "application/x-www-form-urlencoded"

DEFAULT_HTML = frozenset({"/index", "/register", "/login", "/welcome", "/video", "/picture"})
DEFAULT_HTML_TAG = {"/register.html": 0, "/login.html": 1}

_SELECT_USER = "SELECT username, password FROM user WHERE username=%s LIMIT 1"
_INSERT_USER = "INSERT INTO user(username, password) VALUES(%s, %s)"


class ParseState(Enum):
    REQUEST_LINE = 0
    HEADERS = 1
    BODY = 2
    FINISH = 3


def _hex_value(byte):
    char = chr(byte)
    if char in "0123456789abcdefABCDEF":
        return int(char, 16)
    return 0


def parse_urlencoded(body):
    """Decode an application/x-www-form-urlencoded body into a dict.

    ``+`` becomes a space and ``%XX`` the byte it names (invalid hex digits
    count as 0). Pairs without ``=`` are ignored; later keys overwrite earlier.
    """
    raw = body.encode("utf-8") if isinstance(body, str) else bytes(body)
    if not raw:
        return {}
    decoded = bytearray()
    i = 0
    while i < len(raw):
        byte = raw[i]
        if byte == ord("+"):
            decoded.append(ord(" "))
        elif byte == ord("%") and i + 2 < len(raw):
            decoded.append((_hex_value(raw[i + 1]) << 4) | _hex_value(raw[i + 2]))
            i += 2
        else:
            decoded.append(byte)
        i += 1
    text = decoded.decode("utf-8", errors="replace")

    result = {}
    for pair in text.split("&"):
        key, sep, value = pair.partition("=")
        if sep:
            result[key] = value
            log_debug("Parsed form data: %s = %s", key, value)
    return result


class HttpRequest:
    """State machine that parses a request line, headers and a form body."""

    def __init__(self):
        self.init()

    def init(self):
        """Reset to the state before any request was parsed."""
        self.state = ParseState.REQUEST_LINE
        self.method = ""
        self.path = ""
        self.version = ""
        self.body = ""
        self.headers = {}
        self._post = {}

    def parse(self, buff):
        """Consume a request from ``buff``; False if it is empty or the request line is bad."""
        if buff.readable_bytes() <= 0:
            return False
        while buff.readable_bytes() and self.state is not ParseState.FINISH:
            data = buff.peek()
            line_end = data.find(_CRLF)
            if line_end < 0:
                line_end = len(data)
            line = data[:line_end].decode("utf-8", errors="replace")

            if self.state is ParseState.REQUEST_LINE:
                if not self._parse_request_line(line):
                    return False
                self._parse_path()
            elif self.state is ParseState.HEADERS:
                self._parse_header(line)
                if buff.readable_bytes() <= 2:
                    self.state = ParseState.FINISH
            elif self.state is ParseState.BODY:
                self._parse_body(line)

            if self.state is not ParseState.FINISH:
                buff.retrieve(min(line_end + 2, buff.readable_bytes()))
        buff.retrieve_all()
        log_debug("[%s], [%s], [%s]", self.method, self.path, self.version)
        return True

    def is_keep_alive(self):
        """True for an HTTP/1.1 request asking for ``Connection: keep-alive``."""
        return self.headers.get("Connection") == "keep-alive" and self.version == "1.1"

    def get_post(self, key):
        """Return the form value for ``key``, or an empty string."""
        if not key:
            raise ValueError("key must not be empty")
        return self._post.get(key, "")

    @staticmethod
    def user_verify(name, pwd, is_login):
        """Check a login, or register a new user; True on success."""
        if not name or not pwd:
            return False
        log_info("Verify name:%s pwd:%s", name, pwd)
        with SqlConnPool.instance().connection() as conn:
            if conn is None:
                return False
            try:
                with conn.cursor() as cursor:
                    cursor.execute(_SELECT_USER, (name,))
                    rows = cursor.fetchall()
            except pymysql.MySQLError:
                return False

            flag = not is_login
            for row in rows:
                log_debug("MYSQL ROW: %s %s", row[0], row[1])
                if is_login:
                    flag = pwd == row[1]
                    if not flag:
                        log_info("pwd error!")
                else:
                    flag = False
                    log_info("user used!")

            if not is_login and flag:
                log_debug("regirster!")
                try:
                    with conn.cursor() as cursor:
                        cursor.execute(_INSERT_USER, (name, pwd))
                    conn.commit()
                except pymysql.MySQLError:
                    log_debug("Insert error!")
                    flag = False
        log_debug("UserVerify success!!")
        return flag

    def _parse_request_line(self, line):
        match = _REQUEST_LINE.fullmatch(line)
        if match is None:
            log_error("RequestLine Error")
            return False
        self.method, self.path, self.version = match.groups()
        self.state = ParseState.HEADERS
        return True

    def _parse_path(self):
        if self.path == "/":
            self.path = "/index.html"
        elif self.path in DEFAULT_HTML:
            self.path += ".html"

    def _parse_header(self, line):
        match = _HEADER_LINE.fullmatch(line)
        if match is not None:
            self.headers[match.group(1)] = match.group(2)
        else:
            self.state = ParseState.BODY

    def _parse_body(self, line):
        self.body = line
        self._parse_post()
        self.state = ParseState.FINISH
        log_debug("Body:%s, len:%d", line, len(line))

    def _parse_post(self):
        if self.method != "POST" or self.headers.get("Content-Type") != _FORM_TYPE:
            return
        self._post = parse_urlencoded(self.body)
        tag = DEFAULT_HTML_TAG.get(self.path)
        if tag is None:
            return
        log_debug("Tag:%d", tag)
        is_login = tag == 1
        if self.user_verify(self._post.get("username", ""), self._post.get("password", ""), is_login):
            self.path = "/welcome.html"
        else:
            self.path = "/error.html"