# webserv

A small HTTP server for Linux. It serves static files from a `resources/`
directory under the working directory, handles login and registration forms
against a MySQL `user` table, and closes idle connections with a timer heap.

## How it works

- An `Epoller` (`webserv.epoller`) wraps `select.epoll` and watches the
  listening socket and every client socket, level-triggered or
  edge-triggered depending on the trigger mode.
- Each readable or writable client is handed to a `ThreadPool`
  (`webserv.threadpool`). There an `HttpConn` (`webserv.httpconn`) reads the
  request into a `Buffer` (`webserv.buffer`), parses it with `HttpRequest`
  (`webserv.httprequest`) and builds the reply with `HttpResponse`
  (`webserv.httpresponse`). The file body is memory-mapped and sent with
  `os.writev` together with the response head.
- A `HeapTimer` (`webserv.heaptimer`) closes clients that stay silent longer
  than the timeout; every read or write pushes the deadline back.
- `Log` (`webserv.log`) writes dated log files, either directly or through a
  `BlockQueue` (`webserv.blockqueue`) drained by a background thread. It
  starts a new file when the day changes and every 50,000 lines.
- `SqlConnPool` (`webserv.sqlconnpool`) keeps a fixed set of PyMySQL
  connections for checking and registering users.

## Running the server

Start it from the directory that holds `resources/`:

    webserv

Options:

| option          | default     | meaning                                              |
|-----------------|-------------|------------------------------------------------------|
| `--port`        | `1316`      | port to listen on                                    |
| `--trig-mode`   | `3`         | 0: both LT, 1: connections ET, 2: listener ET, other: both ET |
| `--timeout-ms`  | `60000`     | idle timeout per connection; 0 or less disables it   |
| `--sql-port`    | `3306`      | MySQL port on `localhost`                            |
| `--sql-user`    | `root`      | MySQL user                                           |
| `--db-name`     | `webserver` | MySQL database                                       |
| `--conn-pool`   | `12`        | number of MySQL connections                          |
| `--threads`     | `6`         | worker threads                                       |
| `--no-log`      |             | do not open the log                                  |
| `--log-level`   | `1`         | 0 debug, 1 info, 2 warn, 3 error                     |
| `--log-queue`   | `1024`      | async log queue size; 0 writes synchronously         |

The MySQL password is read from the `WEBSERV_SQL_PASSWORD` environment
variable (empty if unset). Logs go to `./log/YYYY_MM_DD.log`. Ctrl-C stops
the server.

## What it serves

- `/` serves `index.html`; `/index`, `/register`, `/login`, `/welcome`,
  `/video` and `/picture` serve the matching `.html` file; any other path is
  looked up as given.
- A missing file or a directory gives `404.html`, a file not readable by
  others gives `403.html`, and a malformed request line gives `400.html`.
  If that error page is itself missing, a small built-in HTML error page is
  sent instead.
- The `Content-type` comes from the file suffix (`.html`, `.css`, `.js`,
  `.png`, `.jpg`, `.gif`, `.pdf`, `.mpeg`, …), `text/plain` otherwise.
- `Connection: keep-alive` on an HTTP/1.1 request keeps the connection open
  for the next request.

A POST with `Content-Type: application/x-www-form-urlencoded` to `/login`
or `/register` (or their `.html` paths) with `username` and `password`
fields is checked against the `user` table (columns `username` and
`password`). Login succeeds when the stored password matches; registration
succeeds when the name is unused, and inserts the user. Success answers with
`welcome.html`, failure with `error.html`.

## Starting it from Python

```python
from webserv.webserver import WebServer

sql_pwd = "password"
server = WebServer(
    port=1316,
    trig_mode=3,
    timeout_ms=60000,
    sql_port=3306,
    sql_user="root",
    sql_pwd=sql_pwd,
    db_name="webserver",
    conn_pool_num=12,
    thread_num=6,
    open_log=True,
    log_level=1,
    log_que_size=1024,
)
server.start()
```

`start()` runs the event loop in the calling thread; `server.stop()` from
another thread ends it and closes every connection. Passing port `0` binds a
free port, which is then available as `server.port`. `event_modes(trig_mode)`
returns the epoll masks used for the listener and for connections.

## Using the parts on their own

```python
from webserv.buffer import Buffer
from webserv.heaptimer import HeapTimer
from webserv.httprequest import HttpRequest, parse_urlencoded
from webserv.threadpool import ThreadPool
from webserv.log import Log, log_info

buf = Buffer(1024)
buf.append(b"GET /login HTTP/1.1\r\nConnection: keep-alive\r\n\r\n")
request = HttpRequest()
request.parse(buf)
print(request.path, request.is_keep_alive())   # /login.html True

print(parse_urlencoded("user=a+b&x=%41"))      # {'user': 'a b', 'x': 'A'}

timer = HeapTimer()
timer.add(7, 500, lambda: print("connection 7 timed out"))
print(timer.get_next_tick())                   # about 500

with ThreadPool(4) as pool:
    pool.add_task(lambda: print("hello from a worker"))

Log.instance().init(0, "./log", ".log", 0)
log_info("server port:%d", 1316)
Log.instance().close()
```

## Limits

- Linux only: it needs `select.epoll`.
- Requests are read as lines: only the first line after the blank line is
  taken as the body, and `Content-Length` and chunked bodies are not
  handled.
- No HTTPS, no directory listings, no range requests.
- Login and registration need a reachable MySQL server; connections that
  cannot be opened at start-up are logged and left out of the pool, and
  form checks then do not succeed.