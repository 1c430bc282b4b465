"""Event-driven HTTP server: epoll for readiness, a thread pool for the work."""

import argparse
import functools
import os
import select
import socket
import threading

from .epoller import Epoller
from .heaptimer import HeapTimer
from .httpconn import HttpConn
from .log import Log, log_error, log_info, log_warn
from .sqlconnpool import SqlConnPool
from .threadpool import ThreadPool

MAX_FD = 65536


def event_modes(trig_mode):
    """Return the epoll event masks (listen, connection) for a trigger mode.

    0: both level-triggered; 1: connections edge-triggered; 2: listener
    edge-triggered; anything else: both edge-triggered.
    """
    listen_event = select.EPOLLRDHUP
    conn_event = select.EPOLLONESHOT | select.EPOLLRDHUP
    if trig_mode == 0:
        pass
    elif trig_mode == 1:
        conn_event |= select.EPOLLET
    elif trig_mode == 2:
        listen_event |= select.EPOLLET
    else:
        listen_event |= select.EPOLLET
        conn_event |= select.EPOLLET
    return listen_event, conn_event


class WebServer:
    """Serves files from ``./resources/`` of the working directory."""

    def __init__(self, port, trig_mode, timeout_ms, sql_port, sql_user, sql_pwd,
                 db_name, conn_pool_num, thread_num, open_log, log_level, log_que_size):
        self.port = port
        self._timeout_ms = timeout_ms
        self._closed = False
        self._running = False
        self._shut = False
        self._lock = threading.RLock()
        self._timer = HeapTimer()
        self._threadpool = ThreadPool(thread_num)
        self._epoller = Epoller()
        self._users = {}
        self._listen_sock = None

        self._wake_r, self._wake_w = os.pipe()
        os.set_blocking(self._wake_r, False)
        self._epoller.add_fd(self._wake_r, select.EPOLLIN)

        self._src_dir = os.getcwd() + "/resources/"
        HttpConn.user_count = 0
        HttpConn.src_dir = self._src_dir

        self._listen_event, self._conn_event = event_modes(trig_mode)
        HttpConn.is_et = bool(self._conn_event & select.EPOLLET)

        if open_log:
            Log.instance().init(log_level, "./log", ".log", log_que_size)

        SqlConnPool.instance().init("localhost", sql_port, sql_user, sql_pwd, db_name, conn_pool_num)
        if not self._init_socket():
            self._closed = True

        if open_log:
            if self._closed:
                log_error("========== Server init error!==========")
            else:
                log_info("========== Server init ==========")
                log_info("Listen Mode: %s, OpenConn Mode: %s",
                         "ET" if self._listen_event & select.EPOLLET else "LT",
                         "ET" if self._conn_event & select.EPOLLET else "LT")
                log_info("LogSys level: %d", log_level)
                log_info("srcDir: %s", self._src_dir)
                log_info("SqlConnPool num: %d, ThreadPool num: %d", conn_pool_num, thread_num)

    def start(self):
        """Run the event loop until stopped, then release every resource."""
        self._running = True
        try:
            if not self._closed:
                log_info("========== Server start ==========")
            while not self._closed:
                time_ms = -1
                if self._timeout_ms > 0:
                    with self._lock:
                        time_ms = self._timer.get_next_tick()
                count = self._epoller.wait(time_ms)
                for i in range(count):
                    self._dispatch(self._epoller.get_event_fd(i), self._epoller.get_events(i))
        finally:
            self._running = False
            self._shutdown()

    def stop(self):
        """Ask the event loop to finish; shuts down at once if it is not running."""
        self._closed = True
        with self._lock:
            if self._shut:
                return
            try:
                os.write(self._wake_w, b"\0")
            except OSError:
                pass
        if not self._running:
            self._shutdown()

    def _init_socket(self):
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError:
            log_error("Create socket error!")
            return False
        steps = (
            (lambda: sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1),
             "set socket setsockopt error !"),
            (lambda: sock.bind(("", self.port)), "Bind Port:%d error!" % self.port),
            (lambda: sock.listen(socket.SOMAXCONN), "Listen port:%d error!" % self.port),
        )
        for step, message in steps:
            try:
                step()
            except OSError:
                log_error("%s", message)
                sock.close()
                return False
        if not self._epoller.add_fd(sock.fileno(), self._listen_event | select.EPOLLIN):
            log_error("Add listen error!")
            sock.close()
            return False
        sock.setblocking(False)
        self.port = sock.getsockname()[1]
        self._listen_sock = sock
        log_info("Server port:%d", self.port)
        return True

    def _dispatch(self, fd, events):
        if fd == self._wake_r:
            self._drain_wake()
            return
        if self._listen_sock is not None and fd == self._listen_sock.fileno():
            self._deal_listen()
            return
        client = self._users.get(fd)
        if client is None:
            return
        if events & (select.EPOLLRDHUP | select.EPOLLHUP | select.EPOLLERR):
            self._close_client(client)
        elif events & select.EPOLLIN:
            self._deal_read(client)
        elif events & select.EPOLLOUT:
            self._deal_write(client)
        else:
            log_error("Unexpected event")

    def _drain_wake(self):
        try:
            while os.read(self._wake_r, 4096):
                pass
        except BlockingIOError:
            pass

    def _deal_listen(self):
        while True:
            try:
                conn_sock, addr = self._listen_sock.accept()
            except BlockingIOError:
                break
            except OSError as exc:
                log_error("Accept error: %d (%s)", exc.errno or 0, exc.strerror)
                break
            if HttpConn.user_count >= MAX_FD:
                self._send_error(conn_sock, "Server busy!")
                log_warn("Clients is full!")
            else:
                self._add_client(conn_sock, addr)
            if not self._listen_event & select.EPOLLET:
                break

    @staticmethod
    def _send_error(sock, info):
        try:
            sock.send(info.encode("utf-8"))
        except OSError:
            log_warn("send error to client[%d] error!", sock.fileno())
        finally:
            sock.close()

    def _add_client(self, sock, addr):
        sock.setblocking(False)
        client = HttpConn()
        with self._lock:
            client.init(sock, addr)
            fd = client.fd
            self._users[fd] = client
            if self._timeout_ms > 0:
                self._timer.add(fd, self._timeout_ms, functools.partial(self._expire, fd))
            self._epoller.add_fd(fd, select.EPOLLIN | self._conn_event)
        log_info("Client[%d] in!", fd)

    def _expire(self, fd):
        client = self._users.get(fd)
        if client is not None:
            self._close_conn(client)

    def _close_conn(self, client):
        fd = client.fd
        log_info("Client[%d] quit!", fd)
        with self._lock:
            self._epoller.del_fd(fd)
            client.close()
            if self._users.get(fd) is client:
                del self._users[fd]

    def _close_client(self, client):
        with self._lock:
            fd = client.fd
            if self._users.get(fd) is not client:
                return
            if fd in self._timer:
                self._timer.do_work(fd)
            else:
                self._close_conn(client)

    def _extend_time(self, client):
        if self._timeout_ms > 0:
            with self._lock:
                if client.fd in self._timer:
                    self._timer.adjust(client.fd, self._timeout_ms)

    def _deal_read(self, client):
        self._extend_time(client)
        self._threadpool.add_task(functools.partial(self._on_read, client))

    def _deal_write(self, client):
        self._extend_time(client)
        self._threadpool.add_task(functools.partial(self._on_write, client))

    def _on_read(self, client):
        try:
            client.read()
        except (EOFError, OSError):
            self._close_client(client)
            return
        self._on_process(client)

    def _on_process(self, client):
        if client.process():
            self._epoller.mod_fd(client.fd, self._conn_event | select.EPOLLOUT)
        else:
            self._epoller.mod_fd(client.fd, self._conn_event | select.EPOLLIN)

    def _on_write(self, client):
        error = None
        try:
            client.write()
        except OSError as exc:
            error = exc
        if client.to_write_bytes() == 0:
            if client.is_keep_alive():
                self._epoller.mod_fd(client.fd, self._conn_event | select.EPOLLIN)
                return
        elif isinstance(error, BlockingIOError):
            self._epoller.mod_fd(client.fd, self._conn_event | select.EPOLLOUT)
            return
        self._close_client(client)

    def _shutdown(self):
        with self._lock:
            if self._shut:
                return
            self._shut = True
            self._closed = True
        self._threadpool.close()
        with self._lock:
            for client in list(self._users.values()):
                self._epoller.del_fd(client.fd)
                client.close()
            self._users.clear()
            self._timer.clear()
            if self._listen_sock is not None:
                self._listen_sock.close()
                self._listen_sock = None
            self._epoller.close()
            os.close(self._wake_r)
            os.close(self._wake_w)
        SqlConnPool.instance().close_pool()


def main(argv=None):
    """Parse command-line options and run the server until interrupted."""
    parser = argparse.ArgumentParser(prog="webserv", description="Static file and login HTTP server.")
    parser.add_argument("--port", type=int, default=1316)
    parser.add_argument("--trig-mode", type=int, default=3)
    parser.add_argument("--timeout-ms", type=int, default=60000)
    parser.add_argument("--sql-port", type=int, default=3306)
    parser.add_argument("--sql-user", default="root")
    parser.add_argument("--db-name", default="webserver")
    parser.add_argument("--conn-pool", type=int, default=12)
    parser.add_argument("--threads", type=int, default=6)
    parser.add_argument("--no-log", action="store_true")
    parser.add_argument("--log-level", type=int, default=1)
    parser.add_argument("--log-queue", type=int, default=1024)
    args = parser.parse_args(argv)

    sql_pwd = os.environ.get("WEBSERV_SQL_PASSWORD", "")
    server = WebServer(
        args.port, args.trig_mode, args.timeout_ms,
        args.sql_port, args.sql_user, sql_pwd,
        args.db_name, args.conn_pool, args.threads,
        not args.no_log, args.log_level, args.log_queue,
    )
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()
    return 0