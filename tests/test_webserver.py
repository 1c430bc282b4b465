import contextlib
import select
import socket
import threading

import pytest

from webserv.httpconn import HttpConn
from webserv.webserver import WebServer, event_modes

INDEX = b"<html><body>index page</body></html>"
MISSING = b"<html><body>not found</body></html>"


@pytest.fixture
def site(tmp_path, monkeypatch):
    resources = tmp_path / "resources"
    resources.mkdir()
    (resources / "index.html").write_bytes(INDEX)
    (resources / "400.html").write_bytes(b"<html>bad</html>")
    (resources / "404.html").write_bytes(MISSING)
    monkeypatch.chdir(tmp_path)
    return resources


@pytest.fixture
def sql_port():
    with socket.socket() as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


def _make_server(sql_port, trig_mode=3, timeout_ms=60000, port=0):
    password = "password"
    return WebServer(
        port=port, trig_mode=trig_mode, timeout_ms=timeout_ms,
        sql_port=sql_port, sql_user="user", sql_pwd=password,
        db_name="webserver", conn_pool_num=1, thread_num=2,
        open_log=False, log_level=1, log_que_size=0,
    )


@contextlib.contextmanager
def _running(server):
    thread = threading.Thread(target=server.start, daemon=True)
    thread.start()
    try:
        yield thread
    finally:
        server.stop()
        thread.join(10)


def _fetch(port, request):
    with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
        client.sendall(request)
        chunks = []
        while True:
            data = client.recv(65536)
            if not data:
                return b"".join(chunks)
            chunks.append(data)


@pytest.mark.parametrize(
    "trig_mode, listen_et, conn_et",
    [(0, False, False), (1, False, True), (2, True, False), (3, True, True), (7, True, True)],
)
def test_event_modes(trig_mode, listen_et, conn_et):
    listen_event, conn_event = event_modes(trig_mode)
    base_listen = select.EPOLLRDHUP
    base_conn = select.EPOLLONESHOT | select.EPOLLRDHUP
    assert listen_event == base_listen | (select.EPOLLET if listen_et else 0)
    assert conn_event == base_conn | (select.EPOLLET if conn_et else 0)


@pytest.mark.parametrize("trig_mode, expected", [(0, False), (1, True), (2, False), (3, True)])
def test_trigger_mode_sets_connection_edge_mode(site, sql_port, trig_mode, expected):
    server = _make_server(sql_port, trig_mode=trig_mode)
    try:
        assert HttpConn.is_et is expected
        assert HttpConn.src_dir.endswith("/resources/")
    finally:
        server.stop()


@pytest.mark.parametrize("trig_mode, timeout_ms", [(3, 60000), (0, 0), (1, 60000)])
def test_serves_static_file(site, sql_port, trig_mode, timeout_ms):
    server = _make_server(sql_port, trig_mode=trig_mode, timeout_ms=timeout_ms)
    with _running(server) as thread:
        response = _fetch(server.port, b"GET /index HTTP/1.1\r\n\r\n")
    assert response.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Connection: close\r\n" in response
    assert b"Content-length: %d\r\n\r\n" % len(INDEX) in response
    assert response.endswith(INDEX)
    assert not thread.is_alive()


def test_missing_file_gets_not_found(site, sql_port):
    server = _make_server(sql_port)
    with _running(server):
        response = _fetch(server.port, b"GET /nothing.html HTTP/1.1\r\n\r\n")
    assert response.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert response.endswith(MISSING)


def test_start_returns_when_port_in_use(site, sql_port):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("", 0))
        blocker.listen(1)
        busy_port = blocker.getsockname()[1]
        server = _make_server(sql_port, port=busy_port)
        thread = threading.Thread(target=server.start, daemon=True)
        thread.start()
        thread.join(10)
        assert not thread.is_alive()


def test_stop_without_start_closes_listener(site, sql_port):
    server = _make_server(sql_port)
    port = server.port
    server.stop()
    with pytest.raises(ConnectionRefusedError):
        socket.create_connection(("127.0.0.1", port), timeout=2)