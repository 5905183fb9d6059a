# Command adapter - shared app state and error translation for a UI process.
# Created: 2026-10-18
#
# The UI receives either a value or a CommandError{kind, message}; it never
# sees a raw exception.

from __future__ import annotations

import logging
from enum import Enum

import httpx
from pydantic import BaseModel

from kvdesk.authentication import AuthenticationService
from kvdesk.cloudflare.credentials import Credentials
from kvdesk.cloudflare.errors import (
    CloudflareError,
    DisabledTokenError,
    ExpiredTokenError,
    InvalidAccountIdError,
    InvalidExpirationError,
    InvalidMetadataError,
    KeyAlreadyExistsError,
    KeyNotFoundError,
    NamespaceAlreadyExistsError,
    NamespaceNotFoundError,
    NamespaceTitleMissingError,
    NonTextValueError,
    TokenError,
    TokenErrorReason,
    TransportError,
)
from kvdesk.cloudflare.kv import KvClient
from kvdesk.config import Settings, get_settings

logger = logging.getLogger(__name__)


class CommandErrorKind(str, Enum):
    AUTHENTICATION = "Authentication"
    INVALID_TOKEN = "InvalidToken"
    DISABLED_TOKEN = "DisabledToken"
    EXPIRED_TOKEN = "ExpiredToken"
    INVALID_ACCOUNT_ID = "InvalidAccountId"
    NAMESPACE_NOT_FOUND = "NamespaceNotFound"
    NAMESPACE_ALREADY_EXISTS = "NamespaceAlreadyExists"
    KEY_NOT_FOUND = "KeyNotFound"
    KEY_ALREADY_EXISTS = "KeyAlreadyExists"
    INVALID_INPUT = "InvalidInput"
    NETWORK = "Network"
    UNKNOWN = "Unknown"


class CommandError(BaseModel):
    kind: CommandErrorKind
    message: str


# First match wins, so subclasses come before their bases.
_ERROR_KINDS: list[tuple[type[CloudflareError], CommandErrorKind, str]] = [
    (DisabledTokenError, CommandErrorKind.DISABLED_TOKEN, "Token is disabled"),
    (ExpiredTokenError, CommandErrorKind.EXPIRED_TOKEN, "Token is expired"),
    (InvalidAccountIdError, CommandErrorKind.INVALID_ACCOUNT_ID, "Account ID is invalid"),
    (NamespaceNotFoundError, CommandErrorKind.NAMESPACE_NOT_FOUND, "Namespace not found"),
    (
        NamespaceAlreadyExistsError,
        CommandErrorKind.NAMESPACE_ALREADY_EXISTS,
        "A namespace with this title already exists",
    ),
    (NamespaceTitleMissingError, CommandErrorKind.INVALID_INPUT, "Namespace title is missing"),
    (KeyNotFoundError, CommandErrorKind.KEY_NOT_FOUND, "Key not found"),
    (KeyAlreadyExistsError, CommandErrorKind.KEY_ALREADY_EXISTS, "Key already exists"),
    (InvalidMetadataError, CommandErrorKind.INVALID_INPUT, "Metadata is invalid"),
    (InvalidExpirationError, CommandErrorKind.INVALID_INPUT, "Expiration is invalid"),
    (NonTextValueError, CommandErrorKind.INVALID_INPUT, "Value is not text"),
    (TransportError, CommandErrorKind.NETWORK, "A network error occurred"),
]


def to_command_error(error: CloudflareError) -> CommandError:
    """Translate a client error into a user-facing command error."""
    if isinstance(error, TokenError) and error.reason == TokenErrorReason.INVALID:
        logger.warning("Token rejected: %s", error)
        return CommandError(kind=CommandErrorKind.INVALID_TOKEN, message="Token is invalid")

    for error_type, kind, message in _ERROR_KINDS:
        if isinstance(error, error_type):
            if kind == CommandErrorKind.NETWORK:
                logger.error("A network error occurred: %s", error)
            else:
                logger.warning("%s: %s", kind.value, error)
            return CommandError(kind=kind, message=message)

    if isinstance(error, TokenError):
        logger.error("An authentication error occurred: %s", error)
        return CommandError(kind=CommandErrorKind.AUTHENTICATION, message="Authentication error")

    logger.error("An unknown error occurred: %s", error)
    return CommandError(kind=CommandErrorKind.UNKNOWN, message="An unknown error occurred")


class AppState:
    """Process-wide state: settings and one shared HTTP transport.

    Clients built here share the transport and never close it; call
    ``aclose()`` once on shutdown.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or get_settings()
        self.http_client = http_client or httpx.AsyncClient(
            timeout=self.settings.request_timeout
        )
        self.auth_service = AuthenticationService(self.settings.api_url, self.http_client)

    def kv_client(self, credentials: Credentials) -> KvClient:
        return KvClient(credentials, self.settings.api_url, self.http_client)

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
