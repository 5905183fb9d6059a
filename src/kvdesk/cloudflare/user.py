# User Client - verifies the caller's own API token.
# Created: 2026-10-18

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from kvdesk.cloudflare.common import ApiMessage, ApiResponse, CloudflareClient
from kvdesk.cloudflare.errors import UserError, UserTransportError, map_user_errors


class TokenStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"
    EXPIRED = "expired"


class TokenPolicyEffect(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class PermissionGroupMeta(BaseModel):
    key: str | None = None
    value: str | None = None


class PermissionGroup(BaseModel):
    id: str
    name: str | None = None
    meta: PermissionGroupMeta | None = None


class TokenPolicy(BaseModel):
    id: str
    effect: TokenPolicyEffect
    permission_groups: list[PermissionGroup] = Field(default_factory=list)
    resources: dict[str, str] = Field(default_factory=dict)


class Token(BaseModel):
    """An API token as reported by a verify endpoint.

    ``value`` is never sent by the API; the authentication service fills it
    in for the caller's own token.
    """

    id: str
    status: TokenStatus
    value: str | None = Field(default=None, repr=False)
    policies: list[TokenPolicy] | None = None


class UserClient(CloudflareClient):
    """Client for ``/user`` endpoints."""

    def _map_api_errors(self, errors: list[ApiMessage]) -> UserError:
        return map_user_errors(errors)

    def _transport_error(self, message: str) -> UserError:
        return UserTransportError(message)

    async def verify_token(self) -> Token:
        """Verify the token the client was built with.

        Raises:
            UserError: ``UserTokenError`` when the token is rejected.
        """
        response = await self._send("GET", "/user/tokens/verify")
        return self._decode(response, ApiResponse[Token]).result
