"""kvdesk - Cloudflare Workers KV desktop backend."""

from kvdesk.authentication import AccountWithCredentials, AccountWithToken, AuthenticationService
from kvdesk.cloudflare import (
    AccountClient,
    Credentials,
    KvClient,
    Service,
    UserAuthKey,
    UserAuthToken,
    UserClient,
)

__all__ = [
    "AccountClient",
    "AccountWithCredentials",
    "AccountWithToken",
    "AuthenticationService",
    "Credentials",
    "KvClient",
    "Service",
    "UserAuthKey",
    "UserAuthToken",
    "UserClient",
]
