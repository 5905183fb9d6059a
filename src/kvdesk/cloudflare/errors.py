# Cloudflare error hierarchy and wire error code mapping.
# Created: 2026-10-18
#
# One exception base per resource family (Account, User, KV, Authentication).
# TokenError, TransportError and UnknownApiError are cross-cutting mixins so a
# caller can catch either by family or by kind.

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kvdesk.cloudflare.common import ApiMessage

NO_ERRORS_MESSAGE = "No errors in the response."


class TokenErrorReason(str, Enum):
    INVALID = "invalid"
    EXPIRED = "expired"
    DISABLED = "disabled"
    UNKNOWN = "unknown"


class CloudflareError(Exception):
    """Base exception for all Cloudflare API errors."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message or self.__class__.__name__)


class TransportError(CloudflareError):
    """Connection failure or a response body that could not be decoded."""


class UnknownApiError(CloudflareError):
    """Unrecognized error code, or an error envelope without errors."""


class TokenError(CloudflareError):
    """The API token was rejected."""

    def __init__(self, reason: TokenErrorReason, message: str = ""):
        self.reason = reason
        super().__init__(message or f"Token is {reason.value}")


# --- Account ---


class AccountError(CloudflareError):
    """Base for account endpoint errors."""


class InvalidAccountIdError(AccountError):
    """The account id does not exist or is not accessible."""


class AccountTokenError(AccountError, TokenError):
    pass


class AccountTransportError(AccountError, TransportError):
    pass


class AccountUnknownError(AccountError, UnknownApiError):
    pass


# --- User ---


class UserError(CloudflareError):
    """Base for user endpoint errors."""


class UserTokenError(UserError, TokenError):
    pass


class UserTransportError(UserError, TransportError):
    pass


class UserUnknownError(UserError, UnknownApiError):
    pass


# --- KV ---


class KvError(CloudflareError):
    """Base for Workers KV errors."""


class NamespaceAlreadyExistsError(KvError):
    """A namespace with this title already exists."""


class NamespaceNotFoundError(KvError):
    pass


class NamespaceTitleMissingError(KvError):
    pass


class KeyNotFoundError(KvError):
    pass


class KeyAlreadyExistsError(KvError):
    """Raised by create_kv_pair when the key is already present."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Key already exists: {key}")


class InvalidMetadataError(KvError):
    pass


class InvalidExpirationError(KvError):
    pass


class NonTextValueError(KvError):
    """The bulk endpoint cannot return a binary value as text."""


class KvTokenError(KvError, TokenError):
    pass


class KvTransportError(KvError, TransportError):
    pass


class KvUnknownError(KvError, UnknownApiError):
    pass


# --- Authentication ---


class AuthenticationError(CloudflareError):
    """Base for errors raised by the authentication workflow itself."""


class DisabledTokenError(AuthenticationError, TokenError):
    def __init__(self, message: str = "Token is disabled"):
        super().__init__(TokenErrorReason.DISABLED, message)


class ExpiredTokenError(AuthenticationError, TokenError):
    def __init__(self, message: str = "Token is expired"):
        super().__init__(TokenErrorReason.EXPIRED, message)


# --- Code tables ---

ErrorFactory = Callable[[str], CloudflareError]


def _invalid_token(cls: type[TokenError]) -> ErrorFactory:
    return lambda message: cls(TokenErrorReason.INVALID, message)


ACCOUNT_ERRORS: dict[int, ErrorFactory] = {
    1000: _invalid_token(AccountTokenError),
    1001: _invalid_token(AccountTokenError),
    6003: _invalid_token(AccountTokenError),
    7003: InvalidAccountIdError,
    9109: InvalidAccountIdError,
}

USER_ERRORS: dict[int, ErrorFactory] = {
    1000: _invalid_token(UserTokenError),
    1001: _invalid_token(UserTokenError),
    6003: _invalid_token(UserTokenError),
}

KV_ERRORS: dict[int, ErrorFactory] = {
    10000: _invalid_token(KvTokenError),
    10001: _invalid_token(KvTokenError),
    10009: KeyNotFoundError,
    10013: NamespaceNotFoundError,
    10014: NamespaceAlreadyExistsError,
    10019: NamespaceTitleMissingError,
    10029: NonTextValueError,
    10033: InvalidExpirationError,
    10147: InvalidMetadataError,
}


def _map_first(
    errors: Sequence[ApiMessage],
    table: dict[int, ErrorFactory],
    unknown: type[UnknownApiError],
) -> CloudflareError:
    if not errors:
        return unknown(NO_ERRORS_MESSAGE)

    # The first error is authoritative; the rest are informational.
    error = errors[0]
    factory = table.get(error.code)
    if factory is None:
        return unknown(error.message)
    return factory(error.message)


def map_account_errors(errors: Sequence[ApiMessage]) -> AccountError:
    return _map_first(errors, ACCOUNT_ERRORS, AccountUnknownError)  # type: ignore[return-value]


def map_user_errors(errors: Sequence[ApiMessage]) -> UserError:
    return _map_first(errors, USER_ERRORS, UserUnknownError)  # type: ignore[return-value]


def map_kv_errors(errors: Sequence[ApiMessage]) -> KvError:
    return _map_first(errors, KV_ERRORS, KvUnknownError)  # type: ignore[return-value]
