import logging
from enum import Enum
from typing import Any, Callable

from . import engine
from .config import Settings
from .credentials import Credentials
from .errors import RequestReusedError
from .headers import HeaderList
from .http_response import HttpResponse
from .requests_transport import RequestsTransport
from .scope_guard import OnScopeExit
from .transport import Option, Transport


logger = logging.getLogger(__name__)


class HttpMethod(Enum):
    # Method can only be a regular POST in our use case
    POST = "POST"


class HttpRequest:
    """A single HTTP POST to one URL.

    Configure it, then call `send()` exactly once. The request owns its
    transport and releases it on `close()` or when leaving a ``with`` block.
    """

    def __init__(
        self,
        url: str,
        settings: Settings | None = None,
        transport_factory: Callable[[Settings], Transport] = RequestsTransport,
    ):
        self._settings: Settings = settings if settings is not None else engine.current_settings()
        self._transport: Transport = transport_factory(self._settings)
        self._headers: HeaderList = HeaderList()
        self._sent: bool = False

        with OnScopeExit(self._transport.close) as close_transport:
            self.set_option(Option.URL, url)
            close_transport.release()

    def __enter__(self) -> "HttpRequest":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        self._transport.close()

    @property
    def headers(self) -> HeaderList:
        return self._headers

    def set_method(self, method: HttpMethod) -> None:
        if method is not HttpMethod.POST:
            raise ValueError(f"Unsupported HTTP method: {method!r}")
        self.set_option(Option.POST, True)

    def set_content_type(self, content_type: str) -> None:
        self._headers.append(f"Content-Type: {content_type}")

    def set_credentials(self, credentials: Credentials) -> None:
        credentials.certify(self)

    def set_option(self, option: Option, value: Any) -> None:
        """Sets a transfer option on the underlying transport.

        Lets collaborators such as credentials configure the transfer without
        access to the transport itself. Raises `UnsupportedOptionError` or
        `OptionError` when the transport rejects the option.
        """
        self._transport.set_option(option, value)

    def send(self, request: str | bytes) -> HttpResponse:
        """Performs the request and returns the response.

        Blocks until the complete response is received or the configured
        timeout is reached. A `str` is sent UTF-8 encoded; `bytes` are sent
        as they are. Raises `TransferError` if the transfer fails.
        """
        if self._sent:
            raise RequestReusedError("send: request has already been sent")
        self._sent = True

        if self._settings.verbose:
            self.set_option(Option.VERBOSE, True)

        # Some servers don't like requests that are made without a user-agent
        self.set_option(Option.USERAGENT, self._settings.user_agent)

        body = request.encode("utf-8") if isinstance(request, str) else bytes(request)
        self.set_option(Option.POSTFIELDS, body)
        self.set_option(Option.POSTFIELDSIZE, len(body))

        self.set_option(Option.HTTPHEADER, self._headers)

        response_data = bytearray()

        def on_receive(chunk: bytes) -> int:
            try:
                response_data.extend(chunk)
            except MemoryError:
                # Anything but len(chunk) aborts the transfer
                return 0
            return len(chunk)

        self.set_option(Option.WRITEFUNCTION, on_receive)

        if not self._settings.verify_tls:
            logger.warning("Sending request without verifying the server's TLS certificate")
            self.set_option(Option.SSL_VERIFYPEER, False)

        self.set_option(Option.TIMEOUT, self._settings.timeout)

        logger.debug("Sending %d byte request", len(body))
        self._transport.perform()

        response_data.append(0)
        code = self._transport.response_code
        logger.debug("Received %d byte response with status %d", len(response_data) - 1, code)
        return HttpResponse(code, response_data)
