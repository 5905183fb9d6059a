# KV Client - Workers KV namespaces, keys and pairs.
# Created: 2026-10-18
#
# Every call is one request except get_kv_pair (value + metadata, sent
# together), create_kv_pair (existence read, then write) and the binary
# fallback of get_kv_pairs (one get_kv_pair per key, cancelled together on
# the first failure).

from __future__ import annotations

import asyncio
import json
import logging
import urllib.parse
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import BaseModel

from kvdesk.cloudflare.common import (
    ApiCursorPaginatedResponse,
    ApiMessage,
    ApiPaginatedResponse,
    ApiResponse,
    CloudflareClient,
    OrderDirection,
    query_params,
)
from kvdesk.cloudflare.errors import (
    InvalidMetadataError,
    KeyAlreadyExistsError,
    KeyNotFoundError,
    KvError,
    KvTransportError,
    NonTextValueError,
    map_kv_errors,
)
from kvdesk.cloudflare.kv_models import (
    KvKey,
    KvKeys,
    KvNamespace,
    KvNamespaces,
    KvNamespacesOrderBy,
    KvPair,
    KvPairMetadata,
    KvPairsDeleteResult,
    KvValue,
    KvValueType,
)

logger = logging.getLogger(__name__)

DEFAULT_KEYS_LIMIT = 1000
MIN_KEYS_LIMIT = 10

# Left unescaped by url_encode_key. Everything else outside the unreserved
# set is escaped, including "/", "?", "#", "%", "[", "]" and non-ASCII bytes.
_KEY_SAFE_CHARS = "!$&'()*+,:;=@\\^|"


def url_encode_key(key: str) -> str:
    """Percent-encode a key name for use as a single path segment."""
    return urllib.parse.quote(key, safe=_KEY_SAFE_CHARS)


def _expiration_from_header(response: httpx.Response) -> datetime | None:
    raw = response.headers.get("expiration")
    if not raw:
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def _check_metadata(metadata: object) -> None:
    if metadata is not None and not isinstance(metadata, dict):
        raise InvalidMetadataError("Metadata must be a JSON object")


def _as_utc(value: datetime) -> datetime:
    """Read a naive datetime as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _value_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return json.dumps(value).encode("utf-8")


class _KvValues(BaseModel):
    values: dict[str, KvValue | None]


class _KvRawValues(BaseModel):
    values: dict[str, Any]


class KvClient(CloudflareClient):
    """Client for Workers KV under ``/accounts/{account_id}/storage/kv``."""

    def _map_api_errors(self, errors: list[ApiMessage]) -> KvError:
        return map_kv_errors(errors)

    def _transport_error(self, message: str) -> KvError:
        return KvTransportError(message)

    @staticmethod
    def _namespaces_path(account_id: str) -> str:
        return f"/accounts/{account_id}/storage/kv/namespaces"

    def _namespace_path(self, account_id: str, namespace_id: str) -> str:
        return f"{self._namespaces_path(account_id)}/{namespace_id}"

    # --- Namespaces ---

    async def list_namespaces(
        self,
        account_id: str,
        order_by: KvNamespacesOrderBy | None = None,
        order_direction: OrderDirection | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> KvNamespaces:
        """List one page of namespaces.

        Args:
            account_id: Owning account.
            order_by: Sort field, ``id`` or ``title``.
            order_direction: ``asc`` or ``desc``.
            page: 1-based page number.
            per_page: Page size.

        Returns:
            KvNamespaces with the page items and the offset page info.
        """
        params = query_params(
            order=order_by,
            direction=order_direction,
            page=page,
            per_page=per_page,
        )
        response = await self._send("GET", self._namespaces_path(account_id), params=params)
        envelope = self._decode(response, ApiPaginatedResponse[list[KvNamespace]])
        return KvNamespaces(items=envelope.result, page_info=envelope.result_info)

    async def get_namespace(self, account_id: str, namespace_id: str) -> KvNamespace:
        response = await self._send("GET", self._namespace_path(account_id, namespace_id))
        return self._decode(response, ApiResponse[KvNamespace]).result

    async def create_namespace(self, account_id: str, title: str) -> KvNamespace:
        response = await self._send(
            "POST", self._namespaces_path(account_id), json={"title": title}
        )
        namespace = self._decode(response, ApiResponse[KvNamespace]).result
        logger.info("Created KV namespace %s (%s)", namespace.id, namespace.title)
        return namespace

    async def update_namespace(
        self, account_id: str, namespace_id: str, title: str
    ) -> KvNamespace:
        """Rename a namespace. The title is the only mutable field."""
        response = await self._send(
            "PUT", self._namespace_path(account_id, namespace_id), json={"title": title}
        )
        return self._decode(response, ApiResponse[KvNamespace]).result

    async def delete_namespace(self, account_id: str, namespace_id: str) -> None:
        response = await self._send("DELETE", self._namespace_path(account_id, namespace_id))
        self._ensure_success(response)
        logger.info("Deleted KV namespace %s", namespace_id)

    # --- Keys ---

    async def list_keys(
        self,
        account_id: str,
        namespace_id: str,
        limit: int | None = None,
        cursor: str | None = None,
        prefix: str | None = None,
    ) -> KvKeys:
        """List one page of keys.

        ``limit`` defaults to 1000 and is raised to 10 when smaller, the
        API's own lower bound. ``cursor`` and ``prefix`` are sent as given.
        """
        if limit is None:
            limit = DEFAULT_KEYS_LIMIT
        elif limit < MIN_KEYS_LIMIT:
            limit = MIN_KEYS_LIMIT

        params = query_params(limit=limit, cursor=cursor, prefix=prefix)
        response = await self._send(
            "GET", f"{self._namespace_path(account_id, namespace_id)}/keys", params=params
        )
        envelope = self._decode(response, ApiCursorPaginatedResponse[list[KvKey]])
        return KvKeys(
            keys=envelope.result,
            count=envelope.result_info.count,
            cursor=envelope.result_info.cursor,
        )

    # --- Pairs ---

    def _value_path(self, account_id: str, namespace_id: str, key: str) -> str:
        return f"{self._namespace_path(account_id, namespace_id)}/values/{url_encode_key(key)}"

    async def get_kv_pair(self, account_id: str, namespace_id: str, key: str) -> KvPair:
        """Read a value together with its expiration and metadata.

        The value and the metadata come from two requests sent concurrently.
        They are not a consistent snapshot: a concurrent writer can make the
        metadata belong to a different write than the value.
        """
        response, metadata = await asyncio.gather(
            self._send("GET", self._value_path(account_id, namespace_id, key)),
            self.get_kv_pair_metadata(account_id, namespace_id, key),
            return_exceptions=True,
        )
        if isinstance(response, BaseException):
            raise response
        # The value request decides the outcome; a metadata error only
        # matters once the value was found.
        self._ensure_success(response)
        if isinstance(metadata, BaseException):
            raise metadata

        return KvPair(
            key=key,
            value=response.content,
            expiration=_expiration_from_header(response),
            metadata=metadata,
        )

    async def get_kv_pair_metadata(
        self, account_id: str, namespace_id: str, key: str
    ) -> KvPairMetadata | None:
        """Return the metadata of a key, or None when it has none."""
        path = f"{self._namespace_path(account_id, namespace_id)}/metadata/{url_encode_key(key)}"
        response = await self._send("GET", path)
        return self._decode(response, ApiResponse[KvPairMetadata | None]).result

    async def write_kv_pair(
        self,
        account_id: str,
        namespace_id: str,
        key: str,
        value: bytes = b"",
        expiration: datetime | None = None,
        expiration_ttl: int | None = None,
        metadata: KvPairMetadata | None = None,
    ) -> KvPair:
        """Write a value, overwriting any existing one.

        ``expiration`` and ``expiration_ttl`` are sent independently; the API
        decides when both are present. A naive ``expiration`` is read as UTC.

        Raises:
            InvalidMetadataError: ``metadata`` is not a JSON object. Nothing
                is sent in that case.
        """
        _check_metadata(metadata)
        if expiration is not None:
            expiration = _as_utc(expiration)

        params = query_params(
            expiration=int(expiration.timestamp()) if expiration else None,
            expiration_ttl=expiration_ttl,
        )
        form = {"metadata": json.dumps(metadata) if metadata is not None else "null"}
        response = await self._send(
            "PUT",
            self._value_path(account_id, namespace_id, key),
            params=params,
            data=form,
            files={"value": (None, value)},
        )
        self._ensure_success(response)

        return KvPair(key=key, value=value, expiration=expiration, metadata=metadata)

    async def create_kv_pair(
        self,
        account_id: str,
        namespace_id: str,
        key: str,
        value: bytes = b"",
        expiration: datetime | None = None,
        expiration_ttl: int | None = None,
        metadata: KvPairMetadata | None = None,
    ) -> KvPair:
        """Write a pair only if the key does not exist yet.

        This is a read followed by a write, not an atomic operation. Two
        concurrent creators may both see the key as missing and both write;
        the last write wins. The API has no conditional put to close the gap.

        Raises:
            KeyAlreadyExistsError: The key already exists.
            InvalidMetadataError: ``metadata`` is not a JSON object.
        """
        _check_metadata(metadata)
        try:
            await self.get_kv_pair(account_id, namespace_id, key)
        except KeyNotFoundError:
            return await self.write_kv_pair(
                account_id,
                namespace_id,
                key,
                value=value,
                expiration=expiration,
                expiration_ttl=expiration_ttl,
                metadata=metadata,
            )
        raise KeyAlreadyExistsError(key)

    async def delete_kv_pairs(
        self, account_id: str, namespace_id: str, keys: list[str]
    ) -> KvPairsDeleteResult:
        """Bulk delete. A success status may still list unsuccessful keys."""
        response = await self._send(
            "POST",
            f"{self._namespace_path(account_id, namespace_id)}/bulk/delete",
            json=keys,
        )
        result = self._decode(response, ApiResponse[KvPairsDeleteResult]).result
        if result.unsuccessful_keys:
            logger.warning(
                "Bulk delete in %s left %d key(s) undeleted",
                namespace_id,
                len(result.unsuccessful_keys),
            )
        return result

    async def get_kv_values(
        self,
        account_id: str,
        namespace_id: str,
        keys: list[str],
        value_type: KvValueType | None = None,
        with_metadata: bool | None = None,
    ) -> dict[str, KvValue | None] | dict[str, Any]:
        """Bulk read values.

        Returns:
            ``{key: KvValue | None}`` when ``with_metadata`` is true, otherwise
            the raw ``{key: value}`` mapping.

        Raises:
            NonTextValueError: A requested value is binary and cannot be
                returned as text.
        """
        body: dict[str, Any] = {"keys": keys}
        if value_type is not None:
            body["type"] = value_type.value
        if with_metadata is not None:
            body["withMetadata"] = with_metadata

        response = await self._send(
            "POST",
            f"{self._namespace_path(account_id, namespace_id)}/bulk/get",
            json=body,
        )
        if with_metadata:
            return self._decode(response, ApiResponse[_KvValues]).result.values
        return self._decode(response, ApiResponse[_KvRawValues]).result.values

    async def get_kv_pairs(
        self, account_id: str, namespace_id: str, keys: list[str]
    ) -> list[KvPair]:
        """Read several pairs, in the order of ``keys``.

        Uses the bulk endpoint. When it refuses because a value is binary,
        falls back to one get_kv_pair per key, which yields the same shape.
        """
        try:
            values = await self.get_kv_values(
                account_id,
                namespace_id,
                keys,
                value_type=KvValueType.TEXT,
                with_metadata=True,
            )
        except NonTextValueError:
            logger.debug(
                "Bulk get in %s hit a binary value, reading %d key(s) individually",
                namespace_id,
                len(keys),
            )
            return await self._get_kv_pairs_individually(account_id, namespace_id, keys)

        result = []
        for key in keys:
            # A key left out of the response reads like an explicit null.
            entry = values.get(key)
            if entry is None:
                result.append(KvPair(key=key))
            else:
                result.append(
                    KvPair(
                        key=key,
                        value=_value_bytes(entry.value),
                        expiration=entry.expiration,
                        metadata=entry.metadata,
                    )
                )
        return result

    async def _get_kv_pairs_individually(
        self, account_id: str, namespace_id: str, keys: list[str]
    ) -> list[KvPair]:
        """Concurrent get_kv_pair per key; the first failure cancels the rest."""
        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [
                    tg.create_task(self.get_kv_pair(account_id, namespace_id, key))
                    for key in keys
                ]
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from None
        return [task.result() for task in tasks]
