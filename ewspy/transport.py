from enum import Enum
from typing import Any, Protocol


class Option(Enum):
    URL = "url"
    POST = "post"
    USERAGENT = "useragent"
    POSTFIELDS = "postfields"
    POSTFIELDSIZE = "postfieldsize"
    HTTPHEADER = "httpheader"
    WRITEFUNCTION = "writefunction"
    USERPWD = "userpwd"
    HTTPAUTH = "httpauth"
    VERBOSE = "verbose"
    SSL_VERIFYPEER = "ssl_verifypeer"
    TIMEOUT = "timeout"


class AuthScheme(Enum):
    NTLM = "ntlm"
    BASIC = "basic"


class Transport(Protocol):
    @property
    def response_code(self) -> int:
        ...

    def set_option(self, option: Option, value: Any) -> None:
        ...

    def perform(self) -> None:
        ...

    def close(self) -> None:
        ...
