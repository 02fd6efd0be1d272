import logging
import socket
import threading
import time
from collections.abc import Callable, Iterable
from typing import Any

import requests
from requests.auth import AuthBase, HTTPBasicAuth
from requests.structures import CaseInsensitiveDict
from requests_ntlm import HttpNtlmAuth

from . import engine
from .config import Settings
from .errors import (
    OptionError,
    SessionInitError,
    TransferError,
    UnsupportedOptionError,
    make_error,
)
from .transport import AuthScheme, Option, Transport


logger = logging.getLogger(__name__)
wire_logger = logging.getLogger("ewspy.wire")

_REDACTED_HEADERS = frozenset({"authorization", "proxy-authorization"})


def _redact(name: str, value: str) -> str:
    if name.lower() in _REDACTED_HEADERS:
        scheme = value.split(" ", 1)[0]
        return f"{scheme} <redacted>"
    return value


class _Deadline:
    """Time budget for one whole transfer.

    requests only bounds each connect and each socket read, so a server that
    keeps dripping bytes would never trip its timeout. Once the response
    headers are in, a timer shuts the connection's socket down when the budget
    runs out, which makes the blocked read return.
    """

    def __init__(self, seconds: float) -> None:
        self._expires_at = time.monotonic() + seconds
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._sock: socket.socket | None = None
        self._done = False
        self.expired = False

    def watch(self, response: requests.Response) -> None:
        connection = getattr(response.raw, "connection", None)
        self._sock = getattr(connection, "sock", None)
        remaining = max(0.0, self._expires_at - time.monotonic())
        self._timer = threading.Timer(remaining, self._expire)
        self._timer.daemon = True
        self._timer.start()

    def check(self) -> bool:
        if time.monotonic() >= self._expires_at:
            with self._lock:
                if not self._done:
                    self.expired = True
        return self.expired

    def finish(self) -> None:
        with self._lock:
            self._done = True
        if self._timer is not None:
            self._timer.cancel()

    def _expire(self) -> None:
        with self._lock:
            if self._done:
                return
            self.expired = True
            sock = self._sock
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass


def _check_str(value: Any) -> Any:
    if not isinstance(value, str):
        raise TypeError(f"expected str, got {type(value).__name__}")
    return value


def _check_flag(value: Any) -> bool:
    if not isinstance(value, (bool, int)):
        raise TypeError(f"expected bool, got {type(value).__name__}")
    return bool(value)


def _check_bytes(value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeError(f"expected bytes, got {type(value).__name__}")
    return bytes(value)


def _check_size(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"size must not be negative, got {value}")
    return value


def _check_header_lines(value: Any) -> tuple[str, ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise TypeError(f"expected an iterable of header lines, got {type(value).__name__}")
    lines = tuple(value)
    for line in lines:
        if not isinstance(line, str) or ":" not in line:
            raise ValueError(f"malformed header line {line!r}")
    return lines


def _check_callable(value: Any) -> Callable[[bytes], int]:
    if not callable(value):
        raise TypeError(f"expected a callable, got {type(value).__name__}")
    return value


def _check_auth_scheme(value: Any) -> AuthScheme:
    if not isinstance(value, AuthScheme):
        raise TypeError(f"expected AuthScheme, got {value!r}")
    return value


def _check_timeout(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number of seconds, got {type(value).__name__}")
    if value <= 0:
        raise ValueError(f"timeout must be positive, got {value}")
    return float(value)


_VALIDATORS: dict[Option, Callable[[Any], Any]] = {
    Option.URL: _check_str,
    Option.POST: _check_flag,
    Option.USERAGENT: _check_str,
    Option.POSTFIELDS: _check_bytes,
    Option.POSTFIELDSIZE: _check_size,
    Option.HTTPHEADER: _check_header_lines,
    Option.WRITEFUNCTION: _check_callable,
    Option.USERPWD: _check_str,
    Option.HTTPAUTH: _check_auth_scheme,
    Option.VERBOSE: _check_flag,
    Option.SSL_VERIFYPEER: _check_flag,
    Option.TIMEOUT: _check_timeout,
}


class RequestsTransport(Transport):
    """Blocking transfer engine backed by one `requests.Session`."""

    def __init__(self, settings: Settings | None = None) -> None:
        if not engine.is_initialized():
            raise make_error(SessionInitError, "could not start session", "engine not initialized")

        settings = settings if settings is not None else engine.current_settings()
        self._chunk_size: int = settings.chunk_size
        self._options: dict[Option, Any] = {}
        self._response_code: int = 0

        try:
            self._session: requests.Session | None = requests.Session()
        except Exception as e:
            raise make_error(SessionInitError, "could not start session", e) from e

        # Only headers from the request's own header list go on the wire
        self._session.headers = CaseInsensitiveDict()

    def __copy__(self):
        raise TypeError("RequestsTransport cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("RequestsTransport cannot be copied")

    @property
    def response_code(self) -> int:
        return self._response_code

    def set_option(self, option: Option, value: Any) -> None:
        validator = _VALIDATORS.get(option) if isinstance(option, Option) else None
        if validator is None:
            raise make_error(
                UnsupportedOptionError,
                "set_option: unsupported option",
                f"unknown option {option!r}",
            )

        try:
            self._options[option] = validator(value)
        except (TypeError, ValueError) as e:
            raise make_error(
                OptionError,
                f"set_option: failed setting option {option.name}",
                e,
            ) from e

    def perform(self) -> None:
        if self._session is None:
            raise make_error(TransferError, "perform", "transport is closed")

        url = self._options.get(Option.URL)
        if url is None:
            raise make_error(TransferError, "perform", "no URL set")

        method = "POST" if self._options.get(Option.POST) else "GET"
        body = self._options.get(Option.POSTFIELDS)
        size = self._options.get(Option.POSTFIELDSIZE)
        if body is not None and size is not None:
            if size > len(body):
                raise make_error(TransferError, "perform", "post field size exceeds body length")
            body = body[:size]

        write = self._options.get(Option.WRITEFUNCTION)
        hooks = {"response": [self._trace]} if self._options.get(Option.VERBOSE) else {}
        timeout = self._options.get(Option.TIMEOUT)
        deadline = _Deadline(timeout) if timeout is not None else None

        try:
            with self._session.request(
                method,
                url,
                data=body,
                headers=self._build_headers(),
                auth=self._build_auth(),
                timeout=timeout,
                verify=self._options.get(Option.SSL_VERIFYPEER, True),
                hooks=hooks,
                stream=True,
            ) as response:
                if deadline is not None:
                    deadline.watch(response)
                for chunk in response.iter_content(chunk_size=self._chunk_size):
                    if deadline is not None and deadline.check():
                        break
                    if write is not None and write(chunk) != len(chunk):
                        raise make_error(
                            TransferError, "perform", "failed writing received data to the application"
                        )
                if deadline is not None:
                    deadline.finish()
                    if deadline.expired:
                        raise make_error(TransferError, "perform", "operation timed out")
                self._response_code = response.status_code
        except (requests.RequestException, OSError) as e:
            if deadline is not None and deadline.expired:
                raise make_error(TransferError, "perform", "operation timed out") from e
            raise make_error(TransferError, "perform", e) from e
        finally:
            if deadline is not None:
                deadline.finish()

        logger.debug("%s %s -> %d", method, url, self._response_code)

    def close(self) -> None:
        if self._session is not None:
            try:
                self._session.close()
            except Exception:
                logger.debug("Ignoring failure while closing session", exc_info=True)
            finally:
                self._session = None

    def _build_headers(self) -> CaseInsensitiveDict:
        headers: CaseInsensitiveDict = CaseInsensitiveDict()
        for line in self._options.get(Option.HTTPHEADER, ()):
            name, _, value = line.partition(":")
            name, value = name.strip(), value.strip()
            if name in headers:
                # Repeated field names combine into one comma separated value (RFC 7230, 3.2.2)
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value

        # A User-Agent line from the header list wins over the USERAGENT option
        user_agent = self._options.get(Option.USERAGENT)
        if user_agent is not None and "User-Agent" not in headers:
            headers["User-Agent"] = user_agent
        return headers

    def _build_auth(self) -> AuthBase | None:
        userpwd = self._options.get(Option.USERPWD)
        if userpwd is None:
            return None

        username, _, password = userpwd.partition(":")
        scheme = self._options.get(Option.HTTPAUTH, AuthScheme.BASIC)
        if scheme is AuthScheme.NTLM:
            return HttpNtlmAuth(username, password)
        return HTTPBasicAuth(username, password)

    def _trace(self, response: requests.Response, *args: Any, **kwargs: Any) -> None:
        request = response.request
        lines = [f"> {request.method} {request.url}"]
        lines += [f"> {key}: {_redact(key, value)}" for key, value in request.headers.items()]
        lines.append(f"< {response.status_code} {response.reason}")
        lines += [f"< {key}: {_redact(key, value)}" for key, value in response.headers.items()]
        wire_logger.debug("\n".join(lines))
