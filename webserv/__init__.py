"""Multi-threaded epoll HTTP server with a byte buffer, timer heap, thread pool, logging and a MySQL pool."""

__version__ = "0.1.0"