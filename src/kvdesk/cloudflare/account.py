# Account Client - account lookup and account-scoped token verification.
# Created: 2026-10-18

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from kvdesk.cloudflare.common import ApiMessage, ApiResponse, CloudflareClient
from kvdesk.cloudflare.errors import (
    AccountError,
    AccountTransportError,
    map_account_errors,
)
from kvdesk.cloudflare.user import Token


class AccountSettings(BaseModel):
    abuse_contact_email: str | None = None
    enforce_twofactor: bool | None = None


class Account(BaseModel):
    id: str
    name: str
    created_on: datetime | None = None
    settings: AccountSettings | None = None


class AccountClient(CloudflareClient):
    """Client for ``/accounts/{account_id}`` endpoints."""

    def _map_api_errors(self, errors: list[ApiMessage]) -> AccountError:
        return map_account_errors(errors)

    def _transport_error(self, message: str) -> AccountError:
        return AccountTransportError(message)

    async def get_account(self, account_id: str) -> Account:
        response = await self._send("GET", f"/accounts/{account_id}")
        return self._decode(response, ApiResponse[Account]).result

    async def verify_token(self, account_id: str) -> Token:
        """Verify an account-owned API token against its account."""
        response = await self._send("GET", f"/accounts/{account_id}/tokens/verify")
        return self._decode(response, ApiResponse[Token]).result
