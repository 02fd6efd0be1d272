import logging

from lxml import etree

from .errors import ParseError
from .scope_guard import OnScopeExit


logger = logging.getLogger(__name__)

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


def _parse_document(data: bytes) -> etree._ElementTree:
    return etree.ElementTree(etree.fromstring(data, _PARSER))


class HttpResponse:
    """The server's reply: a status code plus a body that is parsed into XML on demand.

    The received buffer ends with a single NUL terminator. Parsing happens at
    most once; it copies everything it needs into an lxml tree and consumes the
    raw buffer, so `body` is only readable before the first `payload()` call.
    """

    def __init__(self, code: int, data: bytearray):
        assert len(data) > 0, "response buffer must not be empty"
        self._data: bytearray = data
        self._code: int = code
        self._doc: etree._ElementTree | None = None
        self._error: ParseError | None = None
        self._parsed: bool = False

    def __copy__(self):
        raise TypeError("HttpResponse cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("HttpResponse cannot be copied")

    def __reduce__(self):
        raise TypeError("HttpResponse cannot be pickled")

    def __repr__(self) -> str:
        return f"HttpResponse(code={self._code}, parsed={self._parsed})"

    @property
    def status_code(self) -> int:
        return self._code

    @property
    def parsed(self) -> bool:
        return self._parsed

    @property
    def body(self) -> bytes:
        if self._parsed:
            raise RuntimeError("response body was consumed by parsing")
        return bytes(self._data[:-1])

    def payload(self) -> etree._ElementTree:
        """Returns the SOAP payload of this response, parsing it on first use."""
        if not self._parsed:
            with OnScopeExit(self._set_parsed):
                self._parse()

        if self._error is not None:
            raise self._error
        if self._doc is None:
            # An earlier parse was interrupted by an unexpected error and the buffer is gone
            raise ParseError("response payload is unavailable after an interrupted parse")
        return self._doc

    def _set_parsed(self) -> None:
        self._parsed = True

    def _parse(self) -> None:
        with memoryview(self._data) as view:
            source = view[:-1].tobytes()
        self._data.clear()

        try:
            self._doc = _parse_document(source)
        except (etree.ParseError, ValueError) as e:
            # Erase lxml's exception type
            self._error = ParseError(str(e))
            logger.debug("Failed to parse %d byte response: %s", len(source), e)
