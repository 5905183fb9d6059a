# Cloudflare API envelopes and the shared async client base.
# Created: 2026-10-18

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Generic, NoReturn, TypeVar

import httpx
from pydantic import BaseModel, Field, ValidationError

from kvdesk.cloudflare.credentials import Credentials
from kvdesk.cloudflare.errors import CloudflareError

logger = logging.getLogger(__name__)

API_URL = "https://api.cloudflare.com/client/v4"

T = TypeVar("T")
E = TypeVar("E", bound=BaseModel)


class ApiMessage(BaseModel):
    """A single ``{code, message}`` entry of an envelope."""

    code: int
    message: str


class ErrorEnvelope(BaseModel):
    """Failure envelope returned with a non-2xx status."""

    errors: list[ApiMessage] = Field(default_factory=list)


class PageInfo(BaseModel):
    """Offset pagination (namespace listing)."""

    count: int
    page: int
    per_page: int
    total_count: int


class CursorPageInfo(BaseModel):
    """Cursor pagination (key listing, bulk reads)."""

    count: int
    cursor: str | None = None


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope."""

    result: T


class ApiPaginatedResponse(ApiResponse[T], Generic[T]):
    result_info: PageInfo


class ApiCursorPaginatedResponse(ApiResponse[T], Generic[T]):
    result_info: CursorPageInfo


class OrderDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


def query_params(**params: Any) -> dict[str, str]:
    """Build a query dict, leaving out parameters that were not supplied."""
    query: dict[str, str] = {}
    for name, value in params.items():
        if value is None:
            continue
        if isinstance(value, Enum):
            value = value.value
        query[name] = str(value)
    return query


class CloudflareClient:
    """Shared plumbing for the resource clients.

    Binds a ``Credentials`` value and an ``httpx.AsyncClient``. Neither is
    mutated, so one client may serve concurrent calls and several clients may
    share one transport. A client that creates its own transport closes it in
    ``aclose()``; a transport passed in belongs to the caller.

    Subclasses map wire errors to their own family via ``_map_api_errors``
    and ``_transport_error``.
    """

    def __init__(
        self,
        credentials: Credentials,
        api_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._credentials = credentials
        self.api_url = (api_url or API_URL).rstrip("/")
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _map_api_errors(self, errors: list[ApiMessage]) -> CloudflareError:
        raise NotImplementedError

    def _transport_error(self, message: str) -> CloudflareError:
        raise NotImplementedError

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send one request carrying the credential headers."""
        try:
            response = await self._http.request(
                method,
                f"{self.api_url}{path}",
                headers=self._credentials.headers(),
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise self._transport_error(f"{method} {path} failed: {e}") from e

        logger.debug("%s %s -> %d", method, path, response.status_code)
        return response

    def _raise_api_error(self, response: httpx.Response) -> NoReturn:
        try:
            envelope = ErrorEnvelope.model_validate_json(response.content)
        except ValidationError as e:
            raise self._transport_error(
                f"Undecodable error response (HTTP {response.status_code})"
            ) from e
        raise self._map_api_errors(envelope.errors)

    def _ensure_success(self, response: httpx.Response) -> None:
        if not response.is_success:
            self._raise_api_error(response)

    def _decode(self, response: httpx.Response, envelope_type: type[E]) -> E:
        """Decode a success envelope into ``envelope_type``.

        An envelope without ``result`` is treated as a failure and its
        ``errors`` are mapped, so an empty list still raises.
        """
        self._ensure_success(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise self._transport_error(
                f"Response is not JSON (HTTP {response.status_code})"
            ) from e

        if not isinstance(payload, dict) or "result" not in payload:
            try:
                envelope = ErrorEnvelope.model_validate(payload)
            except ValidationError as e:
                raise self._transport_error("Response has neither result nor errors") from e
            raise self._map_api_errors(envelope.errors)

        try:
            return envelope_type.model_validate(payload)
        except ValidationError as e:
            raise self._transport_error(f"Unexpected response payload: {e}") from e
