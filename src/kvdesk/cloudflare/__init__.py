"""Cloudflare API clients for accounts, users and Workers KV."""

from kvdesk.cloudflare.account import Account, AccountClient, AccountSettings
from kvdesk.cloudflare.common import API_URL, CursorPageInfo, OrderDirection, PageInfo
from kvdesk.cloudflare.credentials import Credentials, Service, UserAuthKey, UserAuthToken
from kvdesk.cloudflare.kv import KvClient, url_encode_key
from kvdesk.cloudflare.user import Token, TokenStatus, UserClient

__all__ = [
    "API_URL",
    "Account",
    "AccountClient",
    "AccountSettings",
    "Credentials",
    "CursorPageInfo",
    "KvClient",
    "OrderDirection",
    "PageInfo",
    "Service",
    "Token",
    "TokenStatus",
    "UserAuthKey",
    "UserAuthToken",
    "UserClient",
    "url_encode_key",
]
