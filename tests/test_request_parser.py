import pytest

from embhttp.request_parser import ParseError, ParserState, RequestParser


def test_completes_simple_get():
    p = RequestParser()
    assert p.feed(b"GET /index.html HTTP/1.1\r\nHost: x\r\n\r\n") is True
    assert p.state is ParserState.COMPLETE
    req = p.request
    assert req.method == b"GET"
    assert req.path == b"/index.html"
    assert req.http_version == b"HTTP/1.1"
    assert req.body == b""
    assert req.headers.find(b"Host") == b"x"


def test_completes_post_with_body():
    p = RequestParser()
    msg = b"POST /api HTTP/1.1\r\nHost: x\r\nContent-Length: 5\r\n\r\nhello"
    assert p.feed(msg) is True
    assert p.state is ParserState.COMPLETE
    assert p.request.body == b"hello"
    assert p.consumed == len(msg)


def test_handles_byte_at_a_time():
    p = RequestParser()
    msg = b"POST /a HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc"
    for i in range(1, len(msg)):
        assert p.feed(msg[:i]) is False
        assert p.state not in (ParserState.COMPLETE, ParserState.ERROR)
    assert p.feed(msg) is True
    assert p.state is ParserState.COMPLETE
    assert p.request.body == b"abc"


def test_try_again_when_body_truncated():
    p = RequestParser()
    msg = b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabcd"
    assert p.feed(msg) is False
    assert p.state is ParserState.BODY


def test_try_again_on_empty_buffer():
    p = RequestParser()
    assert p.feed(b"") is False
    assert p.state is ParserState.REQUEST_LINE


def test_partial_head_moves_to_headers_state():
    p = RequestParser()
    assert p.feed(b"GET / HTTP/1.1\r\n") is False
    assert p.state is ParserState.HEADERS
    assert p.request is None


def test_rejects_invalid_content_length():
    p = RequestParser()
    msg = b"POST / HTTP/1.1\r\nContent-Length: notanumber\r\n\r\n"
    with pytest.raises(ParseError):
        p.feed(msg)
    assert p.state is ParserState.ERROR


def test_error_state_is_sticky():
    p = RequestParser()
    with pytest.raises(ParseError):
        p.feed(b"POST / HTTP/1.1\r\nContent-Length: x\r\n\r\n")
    with pytest.raises(ParseError):
        p.feed(b"GET / HTTP/1.1\r\n\r\n")


def test_complete_state_is_sticky():
    p = RequestParser()
    assert p.feed(b"GET / HTTP/1.1\r\n\r\n") is True
    assert p.feed(b"") is True
    assert p.request.path == b"/"


def test_reset_allows_a_new_request():
    p = RequestParser()
    assert p.feed(b"GET /one HTTP/1.1\r\n\r\n") is True
    p.reset()
    assert p.state is ParserState.REQUEST_LINE
    assert p.consumed == 0
    assert p.feed(b"GET /two HTTP/1.1\r\n\r\n") is True
    assert p.request.path == b"/two"


def test_consumed_excludes_pipelined_bytes():
    p = RequestParser()
    first = b"POST /a HTTP/1.1\r\nContent-Length: 2\r\n\r\nhi"
    assert p.feed(first + b"GET /b HTTP/1.1\r\n\r\n") is True
    assert p.consumed == len(first)
    assert p.request.body == b"hi"


def test_malformed_request_line_is_rejected():
    p = RequestParser()
    with pytest.raises(ParseError):
        p.feed(b"GARBAGE\r\n\r\n")
    assert p.state is ParserState.ERROR