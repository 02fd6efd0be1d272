import pytest
import socket
import threading


from dataclasses import dataclass, field
from typing import Any, Callable
from contextlib import contextmanager


from ewspy import engine
from ewspy.config import Settings
from ewspy.errors import TransferError, make_error
from ewspy.transport import Option


@dataclass
class ServerDetails:
    host: str = ""
    port: int = 0

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/EWS/Exchange.asmx"


def read_http_request(sock: socket.socket) -> bytes:
    """Reads one HTTP request (headers plus Content-Length body) from `sock`."""
    data = b""
    while b"\r\n\r\n" not in data:
        chunk = sock.recv(4096)
        if not chunk:
            return data
        data += chunk

    head, _, body = data.partition(b"\r\n\r\n")
    content_length = 0
    for line in head.split(b"\r\n")[1:]:
        name, _, value = line.partition(b":")
        if name.strip().lower() == b"content-length":
            content_length = int(value.strip())

    while len(body) < content_length:
        chunk = sock.recv(4096)
        if not chunk:
            break
        body += chunk
    return head + b"\r\n\r\n" + body


def canned_response(body: bytes, status: str = "200 OK") -> bytes:
    return (
        f"HTTP/1.1 {status}\r\n"
        f"Content-Type: text/xml; charset=utf-8\r\n"
        f"Content-Length: {len(body)}\r\n"
        f"Connection: close\r\n\r\n"
    ).encode("ascii") + body


@pytest.fixture
def test_settings() -> Settings:
    return Settings(timeout=5.0, user_agent="ewspy-tests/1.0", verbose=False, verify_tls=True)


@pytest.fixture
def http_engine(test_settings):
    with engine.initialized(test_settings):
        yield


@pytest.fixture
def server_factory() -> Callable[[Callable[[socket.socket], None]], Any]:
    @contextmanager
    def _factory(handler: Callable[[socket.socket], None]):
        details = ServerDetails()
        listener_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener_sock.bind(("127.0.0.1", 0))
        details.host, details.port = listener_sock.getsockname()

        def server_loop(listener: socket.socket):
            try:
                client_sock, _ = listener.accept()
                with client_sock:
                    handler(client_sock)
            except (socket.timeout, OSError):
                pass

        listener_sock.settimeout(2.0)
        listener_sock.listen()
        server_thread = threading.Thread(target=server_loop, args=(listener_sock,))
        server_thread.start()
        try:
            yield details
        finally:
            server_thread.join(timeout=3.0)
            listener_sock.close()

    return _factory


class FakeTransport:
    """Records every option it is given and replays a canned response on perform()."""

    def __init__(self, settings: Settings | None = None, reply: bytes = b"<ok/>", code: int = 200,
                 chunk_size: int = 2, fail_with: str | None = None, reject: set[Option] | None = None):
        self.settings = settings
        self.options: dict[Option, Any] = {}
        self.calls: list[tuple[Option, Any]] = []
        self.reply = reply
        self.code = code
        self.chunk_size = chunk_size
        self.fail_with = fail_with
        self.reject = reject or set()
        self.performed = 0
        self.closed = False
        self._response_code = 0

    @property
    def response_code(self) -> int:
        return self._response_code

    def set_option(self, option: Option, value: Any) -> None:
        if option in self.reject:
            raise make_error(TransferError, "set_option: failed setting option", "rejected by fake")
        if option is Option.HTTPHEADER:
            value = list(value)
        self.options[option] = value
        self.calls.append((option, value))

    def perform(self) -> None:
        self.performed += 1
        if self.fail_with is not None:
            raise make_error(TransferError, "perform", self.fail_with)

        write = self.options[Option.WRITEFUNCTION]
        for start in range(0, len(self.reply), self.chunk_size):
            chunk = self.reply[start:start + self.chunk_size]
            if write(chunk) != len(chunk):
                raise make_error(TransferError, "perform", "failed writing received data to the application")
        self._response_code = self.code

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeTransportFactory:
    kwargs: dict[str, Any] = field(default_factory=dict)
    created: list[FakeTransport] = field(default_factory=list)

    def __call__(self, settings: Settings) -> FakeTransport:
        transport = FakeTransport(settings, **self.kwargs)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


@pytest.fixture
def fake_transports() -> FakeTransportFactory:
    return FakeTransportFactory()
