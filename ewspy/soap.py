import logging
from typing import Callable, Sequence

from .config import Settings
from .credentials import NtlmCredentials
from .http_request import HttpMethod, HttpRequest
from .http_response import HttpResponse
from .requests_transport import RequestsTransport
from .transport import Transport


logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/xml; charset=utf-8"

_ENVELOPE_START = """<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope
    xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
    xmlns:xsd="http://www.w3.org/2001/XMLSchema"
    xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/"
    xmlns:m="http://schemas.microsoft.com/exchange/services/2006/messages"
    xmlns:t="http://schemas.microsoft.com/exchange/services/2006/types"
    >"""


def build_envelope(soap_body: str, soap_headers: Sequence[str] = ()) -> str:
    """Wraps `soap_body` and any `soap_headers` fragments in a SOAP envelope.

    Fragments are inserted verbatim and in order; the header element is left
    out entirely when there are none.
    """
    parts = [_ENVELOPE_START]

    if soap_headers:
        parts.append("<soap:Header>\n")
        parts.extend(soap_headers)
        parts.append("</soap:Header>\n")

    parts.append("<soap:Body>\n")
    parts.append(soap_body)
    parts.append("</soap:Body>\n")
    parts.append("</soap:Envelope>\n")
    return "".join(parts)


def make_raw_soap_request(
    url: str,
    username: str,
    password: str,
    domain: str,
    soap_body: str,
    soap_headers: Sequence[str] = (),
    settings: Settings | None = None,
    transport_factory: Callable[[Settings], Transport] = RequestsTransport,
) -> HttpResponse:
    """Sends a raw SOAP request and returns the server's response, uninterpreted.

    url: The URL of the server to talk to.
    username, password, domain: NTLM login of the user.
    soap_body: The contents of the SOAP body (minus the body element).
    soap_headers: Any SOAP header fragments to add.
    """
    with HttpRequest(url, settings=settings, transport_factory=transport_factory) as request:
        request.set_method(HttpMethod.POST)
        request.set_content_type(CONTENT_TYPE)
        request.set_credentials(NtlmCredentials(username, password, domain))

        logger.debug("Sending SOAP request to %s with %d header fragment(s)", url, len(soap_headers))
        return request.send(build_envelope(soap_body, soap_headers))
