import os

import pytest

from webserv.buffer import Buffer


def test_new_buffer_has_default_capacity():
    buf = Buffer()
    assert buf.writable_bytes() == 1024
    assert buf.readable_bytes() == 0
    assert buf.prependable_bytes() == 0
    assert len(buf) == 0


def test_append_and_peek_round_trip():
    buf = Buffer(16)
    data = b"hello world"
    buf.append(data)
    assert buf.peek() == data
    assert len(buf) == len(data)


def test_append_text_is_utf8_encoded():
    buf = Buffer(4)
    text = "héllo"
    buf.append(text)
    assert buf.peek() == text.encode("utf-8")


def test_append_other_buffer():
    src = Buffer(8)
    src.append(b"abcdef")
    src.retrieve(2)
    dst = Buffer(8)
    dst.append(b"xy")
    dst.append(src)
    assert dst.peek() == b"xy" + b"cdef"
    assert src.peek() == b"cdef"


def test_append_rejects_non_bytes():
    buf = Buffer()
    with pytest.raises(TypeError):
        buf.append(42)


def test_retrieve_moves_read_position():
    buf = Buffer(32)
    data = b"GET / HTTP/1.1"
    buf.append(data)
    buf.retrieve(4)
    assert buf.peek() == data[4:]
    assert buf.prependable_bytes() == 4


def test_retrieve_too_much_raises():
    buf = Buffer(8)
    buf.append(b"abc")
    with pytest.raises(ValueError):
        buf.retrieve(len(b"abc") + 1)


def test_retrieve_until_offset():
    buf = Buffer(32)
    buf.append(b"line one\r\nline two")
    end = buf.peek().find(b"\r\n")
    buf.retrieve_until(end + 2)
    assert buf.peek() == b"line two"


def test_retrieve_all_to_str_empties():
    buf = Buffer(8)
    buf.append("some log line\n")
    assert buf.retrieve_all_to_str() == "some log line\n"
    assert len(buf) == 0
    assert buf.prependable_bytes() == 0


def test_grows_when_needed():
    buf = Buffer(4)
    data = b"abcdefghijklmnop"
    buf.append(data)
    assert buf.peek() == data
    assert buf.writable_bytes() >= 0


def test_compacts_instead_of_growing():
    buf = Buffer(8)
    buf.append(b"abcdef")
    buf.retrieve(4)
    buf.append(b"wxyz")
    assert buf.peek() == b"efwxyz"
    assert buf.prependable_bytes() == 0
    total = buf.readable_bytes() + buf.writable_bytes() + buf.prependable_bytes()
    assert total == 8


def test_has_written_out_of_range():
    buf = Buffer(4)
    with pytest.raises(ValueError):
        buf.has_written(5)


def test_read_fd_reads_more_than_writable():
    r, w = os.pipe()
    try:
        data = b"x" * 5000
        os.write(w, data)
        buf = Buffer(16)
        count = buf.read_fd(r)
        assert count == len(data)
        assert buf.peek() == data
    finally:
        os.close(r)
        os.close(w)


def test_read_fd_fits_in_writable():
    r, w = os.pipe()
    try:
        os.write(w, b"small")
        buf = Buffer(64)
        assert buf.read_fd(r) == len(b"small")
        assert buf.peek() == b"small"
    finally:
        os.close(r)
        os.close(w)


def test_write_fd_consumes_written():
    r, w = os.pipe()
    try:
        buf = Buffer(16)
        buf.append(b"payload")
        assert buf.write_fd(w) == len(b"payload")
        assert os.read(r, 100) == b"payload"
        assert len(buf) == 0
    finally:
        os.close(r)
        os.close(w)


def test_read_fd_on_closed_descriptor_raises():
    r, w = os.pipe()
    os.close(r)
    os.close(w)
    buf = Buffer(16)
    with pytest.raises(OSError):
        buf.read_fd(r)