from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def parse_service_date(value: Any) -> Any:
    """Parse the service's RFC 2822 timestamps (``Sat, 21 Aug 2010 22:31:20 +0000``)."""
    if isinstance(value, str):
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return value
    return value


class Metadata(BaseModel):
    """File or folder metadata from the API."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    path: str
    is_dir: bool = False
    size: str = ""
    total_bytes: int = Field(default=0, alias="bytes")
    modified: datetime | None = None
    client_mtime: datetime | None = None
    rev: str | None = None
    revision: int | None = None
    thumb_exists: bool = False
    icon: str | None = None
    root: str | None = None
    hash: str | None = None
    mime_type: str | None = None
    is_deleted: bool = False
    contents: list[Metadata] | None = None

    @field_validator("modified", "client_mtime", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> Any:
        return parse_service_date(value)

    @property
    def filename(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1]


class QuotaInfo(BaseModel):
    shared: int = 0
    quota: int = 0
    normal: int = 0


class AccountInfo(BaseModel):
    """Account details from ``/account/info``."""

    uid: int | str
    display_name: str = ""
    email: str | None = None
    country: str | None = None
    referral_link: str | None = None
    quota_info: QuotaInfo = Field(default_factory=QuotaInfo)


class ChunkUploadAck(BaseModel):
    """Server acknowledgement of one uploaded chunk."""

    upload_id: str
    offset: int
    expires: datetime

    @field_validator("expires", mode="before")
    @classmethod
    def _parse_expires(cls, value: Any) -> Any:
        return parse_service_date(value)


class DeltaEntry(BaseModel):
    """One change in the delta feed. ``metadata is None`` marks a deletion."""

    path: str
    metadata: Metadata | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_pair(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            if len(value) != 2:
                raise ValueError("delta entry must be a [path, metadata] pair")
            return {"path": value[0], "metadata": value[1]}
        return value

    @property
    def is_deleted(self) -> bool:
        return self.metadata is None


class DeltaPage(BaseModel):
    """One page of the delta feed.

    ``reset`` means the entries are a full baseline: discard any cached
    state before applying them. ``has_more`` means the caller should
    request again immediately with ``cursor``.
    """

    model_config = ConfigDict(populate_by_name=True)

    entries: list[DeltaEntry]
    reset: bool
    cursor: str
    has_more: bool

    def apply(self, cache: dict[str, Metadata]) -> dict[str, Metadata]:
        """Apply this page to ``cache`` (keyed by lower-cased path) in place."""
        if self.reset:
            cache.clear()
        for entry in self.entries:
            key = entry.path.lower()
            if entry.metadata is None:
                # Deleting a folder removes everything below it.
                prefix = key.rstrip("/") + "/"
                for cached in [k for k in cache if k == key or k.startswith(prefix)]:
                    del cache[cached]
            else:
                cache[key] = entry.metadata
        return cache


class CopyRef(BaseModel):
    copy_ref: str
    expires: datetime | None = None

    @field_validator("expires", mode="before")
    @classmethod
    def _parse_expires(cls, value: Any) -> Any:
        return parse_service_date(value)


class SharedLink(BaseModel):
    """A shareable or streamable URL for a file."""

    url: str
    expires: datetime | None = None

    @field_validator("expires", mode="before")
    @classmethod
    def _parse_expires(cls, value: Any) -> Any:
        return parse_service_date(value)


@dataclass(slots=True)
class LoadedFile:
    destination_path: str
    content_type: str | None
    metadata: Metadata | None
    etag: str | None


@dataclass(slots=True)
class LoadedThumbnail:
    destination_path: str
    metadata: Metadata | None


@dataclass(slots=True)
class UploadedFile:
    destination_path: str
    source_path: str
    metadata: Metadata


@dataclass(slots=True)
class CommittedUpload:
    destination_path: str
    upload_id: str
    metadata: Metadata


__all__ = [
    "AccountInfo",
    "ChunkUploadAck",
    "CommittedUpload",
    "CopyRef",
    "DeltaEntry",
    "DeltaPage",
    "LoadedFile",
    "LoadedThumbnail",
    "Metadata",
    "QuotaInfo",
    "SharedLink",
    "UploadedFile",
    "parse_service_date",
]
