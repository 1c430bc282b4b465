"""Process-wide logger writing dated, size-rolled log files, optionally asynchronously."""

import threading
import time
from datetime import datetime
from enum import IntEnum
from pathlib import Path

from .blockqueue import BlockQueue


class LogLevel(IntEnum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3


_TITLES = {
    LogLevel.DEBUG: "[debug]: ",
    LogLevel.INFO: "[info] : ",
    LogLevel.WARN: "[warn] : ",
    LogLevel.ERROR: "[error]: ",
}


def _title(level):
    try:
        return _TITLES[LogLevel(level)]
    except ValueError:
        return _TITLES[LogLevel.INFO]


class Log:
    """A logger that appends timestamped lines to a per-day file.

    With a positive queue capacity, lines are handed to a writer thread;
    otherwise they are written directly. A new file is started when the day
    changes or when the current file holds ``max_lines`` lines.
    """

    MAX_LINES = 50000

    _instance = None
    _instance_lock = threading.Lock()

    def __init__(self):
        self._lock = threading.Lock()
        self._fp = None
        self._queue = None
        self._writer = None
        self._is_async = False
        self._is_open = False
        self._path = Path("./log")
        self._suffix = ".log"
        self._level = int(LogLevel.DEBUG)
        self._line_count = 0
        self._today = 0
        self.max_lines = self.MAX_LINES

    @classmethod
    def instance(cls):
        """Return the shared logger."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def init(self, level, path="./log", suffix=".log", max_queue_capacity=1024):
        """Open today's log file under ``path``; a positive capacity enables async writing."""
        self._stop_writer()
        with self._lock:
            if self._fp is not None:
                self._fp.flush()
                self._fp.close()
                self._fp = None
            self._path = Path(path)
            self._suffix = suffix
            self._level = int(level)
            self._line_count = 0
            now = datetime.now()
            self._today = now.day
            self._path.mkdir(parents=True, exist_ok=True)
            self._fp = open(self._path / f"{now:%Y_%m_%d}{suffix}", "a", encoding="utf-8")
            if max_queue_capacity > 0:
                self._is_async = True
                self._queue = BlockQueue(max_queue_capacity)
                self._writer = threading.Thread(
                    target=self._async_write, args=(self._queue,), name="log-writer", daemon=True
                )
                self._writer.start()
            else:
                self._is_async = False
            self._is_open = True

    def write(self, level, fmt, *args):
        """Format ``fmt % args`` into one timestamped line and emit it."""
        now = datetime.now()
        message = fmt % args if args else fmt
        with self._lock:
            if self._fp is None:
                raise RuntimeError("log is not initialised")
            if self._today != now.day or (
                self._line_count and self._line_count % self.max_lines == 0
            ):
                self._roll(now)
            self._line_count += 1
            line = (
                f"{now:%Y-%m-%d %H:%M:%S}.{now.microsecond:06d} "
                f"{_title(level)}{message}\n"
            )
            if self._is_async and self._queue is not None and not self._queue.full():
                self._queue.push_back(line)
            else:
                self._fp.write(line)

    def flush(self):
        """Wake the writer thread if any and flush the file."""
        if self._is_async and self._queue is not None:
            self._queue.flush()
        with self._lock:
            if self._fp is not None:
                self._fp.flush()

    def close(self):
        """Drain pending lines, stop the writer thread and close the file."""
        self._stop_writer()
        with self._lock:
            if self._fp is not None:
                self._fp.flush()
                self._fp.close()
                self._fp = None
            self._is_open = False

    @property
    def level(self):
        with self._lock:
            return self._level

    @level.setter
    def level(self, value):
        with self._lock:
            self._level = int(value)

    @property
    def is_open(self):
        return self._is_open

    def _roll(self, now):
        tail = f"{now:%Y_%m_%d}"
        if self._today != now.day:
            self._today = now.day
            self._line_count = 0
            name = f"{tail}{self._suffix}"
        else:
            name = f"{tail}-{self._line_count // self.max_lines}{self._suffix}"
        self._fp.flush()
        self._fp.close()
        self._fp = open(self._path / name, "a", encoding="utf-8")

    def _async_write(self, queue):
        while (line := queue.pop()) is not None:
            with self._lock:
                if self._fp is not None:
                    self._fp.write(line)

    def _stop_writer(self):
        queue, writer = self._queue, self._writer
        if queue is None:
            return
        while not queue.empty():
            queue.flush()
            time.sleep(0.001)
        queue.close()
        if writer is not None and writer is not threading.current_thread():
            writer.join()
        self._queue = None
        self._writer = None
        self._is_async = False


def log_base(level, fmt, *args):
    """Write to the shared logger if it is open and ``level`` passes its threshold."""
    log = Log.instance()
    if log.is_open and log.level <= level:
        log.write(level, fmt, *args)
        log.flush()


def log_debug(fmt, *args):
    log_base(LogLevel.DEBUG, fmt, *args)


def log_info(fmt, *args):
    log_base(LogLevel.INFO, fmt, *args)


def log_warn(fmt, *args):
    log_base(LogLevel.WARN, fmt, *args)


def log_error(fmt, *args):
    log_base(LogLevel.ERROR, fmt, *args)