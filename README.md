# embhttp

`embhttp` is a compact HTTP/1.1 toolkit. It needs only the Python standard
library. It is meant for services that want a predictable resource
footprint:

- a fixed number of connection slots,
- fixed-size receive and send buffers,
- a bounded route table.

## What is in the package

- **`embhttp.headers`**
  - `Headers(capacity)` is a header block limited to `capacity` bytes.
  - `add(name, value)` appends a `Name: value` line. It raises
    `BufferOverflowError` if the line does not fit.
  - `find(name)` returns the first value for `name`, or `None`.
  - Iterating a `Headers` yields `(name, value)` pairs, and `len()` counts
    them.
  - `serialize_to(stream)` writes the lines to any object with a `write`
    method.
  - `parse_headers(raw)` builds a `Headers` from a raw header block.
  - `HttpError` is the base exception of the package.
- **`embhttp.query`**
  - `iter_query(path)` yields `(name, value)` pairs. Without a `?`, the
    whole input is read as the query string.
  - `find(path, name)` returns the first raw value, or `None`.
  - `find_decoded(path, name, capacity)` decodes `+` and `%XX`. It raises
    `BufferOverflowError` when the result would exceed `capacity` bytes,
    and `QueryDecodeError` for a malformed escape.
  - `needs_decoding(value)` tells whether a value contains `%` or `+`.
- **`embhttp.request`, `embhttp.response`**
  - `Request` and `Response` are dataclasses holding the start line,
    `headers` and `body`. The parts of the start line must not be empty.
  - `parse_request` and `parse_response` read raw bytes.
  - `to_bytes()` and `serialize_to(stream)` write the wire form.
- **`embhttp.request_parser`**
  - `RequestParser.feed(buffer)` takes the whole buffer received so far.
    It returns `True` once the request is complete, `False` while more
    bytes are needed.
  - `state` is a `ParserState`: `REQUEST_LINE`, `HEADERS`, `BODY`,
    `COMPLETE` or `ERROR`.
  - `request` holds the parsed request.
  - `consumed` counts the bytes taken by the head and the
    `Content-Length` body.
  - `reset()` starts over.
- **`embhttp.endpoint`, `embhttp.connection`**
  - `Endpoint(EndpointConfig(...))` either listens (`EndpointRole.SERVER`)
    or connects (`EndpointRole.CLIENT`). TLS is used when
    `TlsConfig.enable` is set.
  - `wait_for_connection()` blocks until a client connects.
    `wait_for_connection_async()` returns a `concurrent.futures.Future`
    instead.
  - `connect()` opens a connection. `address` reports the bound address
    for a server, or the remote address for a client.
  - `Connection` offers `send_request`, `send_response`,
    `receive_request(buffer_size)` and `receive_response(buffer_size)`.
    Bytes that arrive past the end of one message are kept for the next
    receive. If the peer closes early, `ConnectionClosedError` is raised.
  - Both `Endpoint` and `Connection` are context managers.
- **`embhttp.routing`**
  - `Router(capacity)` matches a method and a regular-expression path to
    a handler.
  - `dispatch(request)` gives:
    - the handler's response for the first route that matches,
    - 405 if no route has the method,
    - 404 otherwise.
  - `default_response(code, reason)` builds an empty HTTP/1.1 response.
  - `client_wants_close(request)` is true for `Connection: close` or any
    version other than HTTP/1.1.
- **`embhttp.storage`**
  - `ServerStorage` sets:
    - the number of connection slots,
    - the number of routes,
    - the request and response buffer sizes.
  - `for_server_host()` gives 256 slots, 32 routes and 8192-byte buffers.
  - `for_microcontroller()` gives 4 slots, 8 routes and 1024-byte buffers.
- **`embhttp.server`**
  - `HttpServer(ServerConfig, ServerStorage)` serves routes from one
    thread, using a non-blocking selector loop.

## Parsing a request

```python
from embhttp.request import parse_request

raw = (
    b"POST /api?name=hello+world HTTP/1.1\r\n"
    b"Host: example.com\r\n"
    b"Content-Length: 5\r\n"
    b"\r\n"
    b"hello"
)
request = parse_request(raw)
request.method                        # b"POST"
request.headers.find(b"Host")         # b"example.com"
request.body                          # b"hello"
```

## Reading query parameters

```python
from embhttp import query

query.find(b"/cb?code=ABC&state=xyz", b"state")           # b"xyz"
query.find_decoded(b"/?q=hello+world%21", b"q", 64)       # b"hello world!"
list(query.iter_query(b"/p?a=1&b=&c=hello"))
# [(b"a", b"1"), (b"b", b""), (b"c", b"hello")]
```

## Feeding a parser as bytes arrive

```python
from embhttp.request_parser import RequestParser

parser = RequestParser()
buffer = b""
for chunk in chunks:               # bytes arriving from the network
    buffer += chunk
    if parser.feed(buffer):
        break

request = parser.request
leftover = buffer[parser.consumed:]   # start of any pipelined request
```

The parser moves to `ParserState.ERROR` and raises `ParseError` when:

- the head is malformed,
- `Content-Length` is not a number that fits in 32 bits.

Every later `feed` raises `ParseError` as well.

## Running a server

```python
from embhttp.endpoint import TlsConfig
from embhttp.server import HttpServer, ServerConfig
from embhttp.storage import for_server_host


def handle_index(request, matches, response, context):
    response.body = b"hello"


config = ServerConfig(port=8080, tls=TlsConfig(enable=False))
server = HttpServer(config, for_server_host())
server.add_route(b"GET", b"^/$", handle_index, None)
done = server.run_async()
# ... serve traffic ...
server.stop()
done.result()
server.close()
```

TLS is enabled by default in `ServerConfig`. To use it, set
`tls.certificate_file` and `tls.private_key_file`. If TLS is enabled and no
certificate file is set, `run()` raises `HttpError`.

A handler receives four arguments:

1. the parsed request,
2. the whole match and the groups of the path pattern, at most five,
3. a 200 response for it to fill in,
4. the context that was given to `add_route`.

Connections are kept alive, and pipelined requests are answered in order.
The server closes a connection in any of these cases:

- the client sends `Connection: close`,
- the client speaks another version than HTTP/1.1,
- a request does not fit the request buffer,
- a response does not fit the response buffer,
- a handler raises.

When all slots are busy, the server stops accepting until one frees.

`HttpServer.state` is a `ServerState`. It goes from `INITIALIZED` to
`RUNNING`, then `STOPPING`, then `STOPPED`. Each change is passed to
`ServerConfig.on_state_changed` when that is set. `HttpServer.address`
reports the bound address, which is useful when listening on port 0.
`close()` forgets every registered route.

## What the package does not do

- There is no command-line program. The server is started from your own
  code.
- Message bodies are framed by `Content-Length` only. Chunked transfer
  encoding is not supported.
- The server does not add headers such as `Content-Length` to responses.
  Handlers add what they need through `response.headers.add`.
- Handlers run on the server's loop thread. A slow handler delays every
  connection.