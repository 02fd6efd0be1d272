from abc import ABC, abstractmethod
from typing import Any, Protocol

from .transport import AuthScheme, Option


class Certifiable(Protocol):
    def set_option(self, option: Option, value: Any) -> None:
        ...


class Credentials(ABC):
    """Something that knows how to authenticate a request."""

    @abstractmethod
    def certify(self, request: Certifiable) -> None:
        ...


class NtlmCredentials(Credentials):
    def __init__(self, username: str, password: str, domain: str):
        self._username = username
        self._password = password
        self._domain = domain

    def __repr__(self) -> str:
        return f"NtlmCredentials(username={self._username!r}, domain={self._domain!r})"

    def certify(self, request: Certifiable) -> None:
        # USERPWD: domain\username:password
        login = f"{self._domain}\\{self._username}:{self._password}"
        request.set_option(Option.USERPWD, login)
        request.set_option(Option.HTTPAUTH, AuthScheme.NTLM)


class BasicCredentials(Credentials):
    def __init__(self, username: str, password: str):
        self._username = username
        self._password = password

    def __repr__(self) -> str:
        return f"BasicCredentials(username={self._username!r})"

    def certify(self, request: Certifiable) -> None:
        request.set_option(Option.USERPWD, f"{self._username}:{self._password}")
        request.set_option(Option.HTTPAUTH, AuthScheme.BASIC)
