"""Pool of reusable MySQL connections."""

import threading
from collections import deque
from contextlib import contextmanager

import pymysql

from .log import log_error, log_warn


class SqlConnPool:
    """A fixed set of database connections shared between threads."""

    _instance = None
    _instance_lock = threading.Lock()

    def __init__(self):
        self._lock = threading.Lock()
        self._conns = deque()
        self._sem = None
        self._max_conn = 0

    @classmethod
    def instance(cls):
        """Return the shared pool."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def init(self, host, port, user, password, db_name, conn_size=10):
        """Open ``conn_size`` connections; failed ones are logged and left out."""
        if conn_size <= 0:
            raise ValueError("conn_size must be positive")
        for _ in range(conn_size):
            try:
                conn = pymysql.connect(
                    host=host, port=port, user=user, password=password, database=db_name
                )
            except pymysql.MySQLError as exc:
                log_error("MySql Connect error! %s", exc)
                continue
            with self._lock:
                self._conns.append(conn)
        self._max_conn = conn_size
        self._sem = threading.Semaphore(conn_size)

    def get_conn(self):
        """Take a connection, waiting for a free slot; None if none is available."""
        if self._sem is None:
            raise RuntimeError("connection pool is not initialised")
        self._sem.acquire()
        with self._lock:
            if not self._conns:
                log_warn("SqlConnPool busy!")
                return None
            return self._conns.popleft()

    def free_conn(self, conn):
        """Return ``conn`` to the pool."""
        if conn is None:
            raise ValueError("cannot free a missing connection")
        if self._sem is None:
            raise RuntimeError("connection pool is not initialised")
        with self._lock:
            self._conns.append(conn)
        self._sem.release()

    def free_conn_count(self):
        with self._lock:
            return len(self._conns)

    def close_pool(self):
        """Close every connection held by the pool."""
        with self._lock:
            while self._conns:
                conn = self._conns.popleft()
                try:
                    conn.close()
                except pymysql.Error as exc:
                    log_error("MySql close error! %s", exc)

    @contextmanager
    def connection(self):
        """Borrow a connection for the duration of a ``with`` block."""
        conn = self.get_conn()
        try:
            yield conn
        finally:
            if conn is not None:
                self.free_conn(conn)