import io

import pytest

from embhttp.headers import Headers, HttpError
from embhttp.request import Request, parse_request


def _request_with_host():
    headers = Headers(64)
    headers.add(b"Host", b"x")
    return Request(b"GET", b"/", b"HTTP/1.1", headers)


def test_wire_bytes():
    assert _request_with_host().to_bytes() == b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"


def test_parse_fields():
    raw = b"POST /api HTTP/1.1\r\nHost: x\r\nContent-Length: 5\r\n\r\nhello"
    request = parse_request(raw)
    assert request.method == b"POST"
    assert request.path == b"/api"
    assert request.http_version == b"HTTP/1.1"
    assert request.body == b"hello"
    assert request.headers.find(b"Content-Length") == b"5"
    assert list(request.headers) == [(b"Host", b"x"), (b"Content-Length", b"5")]


def test_round_trip():
    raw = b"PUT /item?id=3 HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc"
    request = parse_request(raw)
    assert request.to_bytes() == raw
    assert parse_request(request.to_bytes()) == request


def test_serialize_to_stream_matches_to_bytes():
    request = _request_with_host()
    stream = io.BytesIO()
    request.serialize_to(stream)
    assert stream.getvalue() == request.to_bytes()


def test_parse_without_body_has_empty_body():
    request = parse_request(b"GET /index.html HTTP/1.1\r\nHost: x\r\n\r\n")
    assert request.body == b""
    assert request.path == b"/index.html"


def test_empty_fields_rejected():
    with pytest.raises(ValueError):
        Request(b"", b"/", b"HTTP/1.1")
    with pytest.raises(ValueError):
        Request(b"GET", b"", b"HTTP/1.1")
    with pytest.raises(ValueError):
        Request(b"GET", b"/", b"")


def test_str_fields_are_encoded():
    request = Request("GET", "/", "HTTP/1.1")
    assert request.method == b"GET"


def test_parse_without_path_fails():
    with pytest.raises(HttpError):
        parse_request(b"GET\r\n")


def test_parse_unterminated_line_fails():
    with pytest.raises(HttpError):
        parse_request(b"GET / HTTP/1.1")


def test_stream_errors_propagate():
    class FailingStream:
        def write(self, data):
            raise OSError("closed")

    with pytest.raises(OSError):
        _request_with_host().serialize_to(FailingStream())