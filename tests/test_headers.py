import io

import pytest

from embhttp.headers import BufferOverflowError, Headers, HttpError, parse_headers

HEADER_NAME_1 = b"Accept-Encoding"
HEADER_NAME_2 = b"Connection"
HEADER_NAME_3 = b"Upgrade-Insecure-Requests"
HEADER_VALUE_1 = b"gzip, deflate, br"
HEADER_VALUE_2 = b"keep-alive"
HEADER_VALUE_3 = b"1"

HEADERS_STR = (
    HEADER_NAME_1 + b": " + HEADER_VALUE_1 + b"\r\n"
    + HEADER_NAME_2 + b": " + HEADER_VALUE_2 + b"\r\n"
    + HEADER_NAME_3 + b": " + HEADER_VALUE_3 + b"\r\n"
    + b"\r\n"
)

EXPECTED_PAIRS = [
    (HEADER_NAME_1, HEADER_VALUE_1),
    (HEADER_NAME_2, HEADER_VALUE_2),
    (HEADER_NAME_3, HEADER_VALUE_3),
]


def test_init_is_empty():
    headers = Headers(len(HEADERS_STR))
    assert list(headers) == []
    assert len(headers) == 0


def test_parse_yields_all_pairs():
    headers = parse_headers(HEADERS_STR)
    assert list(headers) == EXPECTED_PAIRS


def test_iteration_restarts_every_time():
    headers = parse_headers(HEADERS_STR)
    for _ in range(100):
        assert len(list(headers)) == 3


def test_names_and_values_repeat_on_each_pass():
    headers = parse_headers(HEADERS_STR)
    for _ in range(3):
        assert list(headers) == EXPECTED_PAIRS


def test_values_are_located_in_the_raw_block():
    headers = parse_headers(HEADERS_STR)
    offset = 0
    for name, value in headers:
        assert HEADERS_STR.index(name, offset) == offset
        offset += len(name) + len(b": ")
        assert HEADERS_STR.index(value, offset) == offset
        offset += len(value) + len(b"\r\n")


def test_raw_excludes_final_crlf():
    headers = parse_headers(HEADERS_STR)
    assert headers.raw == HEADERS_STR[: -len(b"\r\n")]


def test_add_builds_expected_block():
    expected = (
        HEADER_NAME_3 + b": " + HEADER_VALUE_2 + b"\r\n"
        + HEADER_NAME_1 + b": " + HEADER_VALUE_3 + b"\r\n"
        + HEADER_NAME_2 + b": " + HEADER_VALUE_1 + b"\r\n"
    )
    headers = Headers(100)
    headers.add(HEADER_NAME_3, HEADER_VALUE_2)
    headers.add(HEADER_NAME_1, HEADER_VALUE_3)
    headers.add(HEADER_NAME_2, HEADER_VALUE_1)
    assert headers.raw == expected
    assert len(headers) == 3


def test_add_overflow_fails():
    headers = Headers(10)
    with pytest.raises(BufferOverflowError):
        headers.add(HEADER_NAME_3, HEADER_VALUE_2)
    assert headers.raw == b""


def test_overflow_leaves_earlier_headers_intact():
    headers = Headers(20)
    headers.add("A", "1")
    with pytest.raises(BufferOverflowError):
        headers.add(HEADER_NAME_3, HEADER_VALUE_2)
    assert list(headers) == [(b"A", b"1")]


def test_find_returns_value_or_none():
    headers = parse_headers(HEADERS_STR)
    assert headers.find(HEADER_NAME_2) == HEADER_VALUE_2
    assert headers.find("Upgrade-Insecure-Requests") == HEADER_VALUE_3
    assert headers.find(b"Host") is None


def test_find_empty_name_rejected():
    with pytest.raises(ValueError):
        parse_headers(HEADERS_STR).find(b"")


def test_find_on_empty_headers():
    assert Headers(100).find(HEADER_NAME_1) is None


def test_malformed_line_raises_on_iteration():
    headers = parse_headers(b"NoSeparator\r\n\r\n")
    with pytest.raises(HttpError):
        list(headers)
    with pytest.raises(HttpError):
        headers.find(b"Other")


def test_serialize_writes_raw_block():
    stream = io.BytesIO()
    parse_headers(HEADERS_STR).serialize_to(stream)
    assert stream.getvalue() == HEADERS_STR[: -len(b"\r\n")]


def test_serialize_empty_writes_crlf():
    stream = io.BytesIO()
    Headers(10).serialize_to(stream)
    assert stream.getvalue() == b"\r\n"