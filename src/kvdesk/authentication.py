# Authentication Service - verifies credentials against an account.
# Created: 2026-10-18
#
# Two-step workflow: verify the API token, then look up the account. Neither
# step has side effects, so a failure in the second needs no compensation.

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, SecretStr

from kvdesk.cloudflare.account import Account, AccountClient
from kvdesk.cloudflare.credentials import Credentials, UserAuthToken
from kvdesk.cloudflare.errors import DisabledTokenError, ExpiredTokenError
from kvdesk.cloudflare.user import Token, TokenStatus, UserClient

logger = logging.getLogger(__name__)


class AccountWithCredentials(BaseModel):
    id: str
    name: str
    credentials: Credentials


class AccountWithToken(BaseModel):
    id: str
    name: str
    token: Token


def check_token_status(token: Token) -> None:
    """Allow an active token, reject a disabled or expired one."""
    if token.status == TokenStatus.ACTIVE:
        return
    if token.status == TokenStatus.DISABLED:
        raise DisabledTokenError()
    if token.status == TokenStatus.EXPIRED:
        raise ExpiredTokenError()


class AuthenticationService:
    """Verifies credentials before the app binds them to KV clients.

    Clients are built per call, bound to the credentials under test and to
    the shared transport.
    """

    def __init__(
        self,
        api_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_url = api_url
        self._http = http_client

    async def _verify_user_token(self, credentials: Credentials) -> Token:
        async with UserClient(credentials, self.api_url, self._http) as users:
            token = await users.verify_token()
        check_token_status(token)
        return token

    async def _get_account(self, credentials: Credentials, account_id: str) -> Account:
        async with AccountClient(credentials, self.api_url, self._http) as accounts:
            return await accounts.get_account(account_id)

    async def verify_credentials(
        self, account_id: str, credentials: Credentials
    ) -> AccountWithCredentials:
        """Check that ``credentials`` can access ``account_id``.

        API tokens are verified first and must be active; the account is not
        looked up for a disabled or expired token. Key based credentials have
        no token to verify and go straight to the account lookup.

        Raises:
            DisabledTokenError: The token is disabled.
            ExpiredTokenError: The token is expired.
            UserError: Token verification failed.
            AccountError: Account lookup failed.
        """
        if isinstance(credentials, UserAuthToken):
            await self._verify_user_token(credentials)

        account = await self._get_account(credentials, account_id)
        logger.info("Verified credentials for account %s", account.id)
        return AccountWithCredentials(id=account.id, name=account.name, credentials=credentials)

    async def login(self, account_id: str, token: str) -> AccountWithToken:
        """Verify a raw API token and return the account with that token."""
        credentials = UserAuthToken(token=SecretStr(token))
        verified = await self._verify_user_token(credentials)
        account = await self._get_account(credentials, account_id)

        logger.info("Logged in to account %s", account.id)
        return AccountWithToken(
            id=account.id,
            name=account.name,
            token=verified.model_copy(update={"value": token}),
        )
