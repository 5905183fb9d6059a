# Workers KV models.
# Created: 2026-10-18

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from kvdesk.cloudflare.common import PageInfo

KvPairMetadata = dict[str, Any]


class KvNamespacesOrderBy(str, Enum):
    ID = "id"
    TITLE = "title"


class KvValueType(str, Enum):
    TEXT = "text"
    JSON = "json"


class KvNamespace(BaseModel):
    id: str
    title: str
    beta: bool | None = None
    supports_url_encoding: bool | None = None


class KvNamespaces(BaseModel):
    """One page of namespaces."""

    items: list[KvNamespace]
    page_info: PageInfo


class KvKey(BaseModel):
    """A key listing entry. Does not carry the value."""

    name: str
    expiration: datetime | None = None
    metadata: Any | None = None


class KvKeys(BaseModel):
    """One page of keys; pass ``cursor`` back to fetch the next one."""

    keys: list[KvKey]
    count: int
    cursor: str | None = None


class KvPair(BaseModel):
    key: str
    value: bytes = b""
    expiration: datetime | None = None
    metadata: KvPairMetadata | None = None


class KvValue(BaseModel):
    """Bulk get entry when metadata is requested."""

    value: Any = None
    metadata: KvPairMetadata | None = None
    expiration: datetime | None = None


class KvPairsDeleteResult(BaseModel):
    """Partial-success record of a bulk delete.

    A key missing from ``unsuccessful_keys`` was not necessarily present
    before the delete.
    """

    successful_key_count: int
    unsuccessful_keys: list[str] = Field(default_factory=list)
