"""
Centralized DTOs and boundary payload schemas for vinylsync services.

Remote responses are loosely typed JSON. They are validated here, against
explicit optional-field schemas, before anything reaches the transformer.
Unknown fields are ignored rather than propagated.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vinylsync.domain.models import NormalizedRecord

# --- Event Publishing Types ---
EventPayload = dict[str, object]
EventPublisher = Callable[[EventPayload], Awaitable[None]]


async def noop_event_publisher(_: EventPayload) -> None:
    """Default no-op event publisher for callers that don't need events."""
    pass


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


def _lenient_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


# --- Remote payloads ---
class ArtistPayload(_Payload):
    id: int | None = None
    name: str = ""
    anv: str | None = None
    role: str | None = None


class LabelPayload(_Payload):
    id: int | None = None
    name: str | None = None
    catno: str | None = None


class FormatPayload(_Payload):
    name: str | None = None
    qty: str | None = None
    descriptions: list[str] = Field(default_factory=list)

    @field_validator("descriptions", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> Any:
        return _none_to_list(value)


class ImagePayload(_Payload):
    type: str | None = None
    uri: str | None = None
    uri150: str | None = None
    uri500: str | None = None


class TrackPayload(_Payload):
    position: str | None = None
    title: str | None = None
    duration: str | None = None


class _ReleaseFields(_Payload):
    """Fields shared by the collection summary and the full release."""

    id: int
    title: str | None = None
    year: int | None = None
    master_id: int | None = None
    master_url: str | None = None
    artists: list[ArtistPayload] = Field(default_factory=list)
    labels: list[LabelPayload] = Field(default_factory=list)
    formats: list[FormatPayload] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    styles: list[str] = Field(default_factory=list)

    @field_validator("artists", "labels", "formats", "genres", "styles", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> Any:
        return _none_to_list(value)

    @field_validator("year", "master_id", mode="before")
    @classmethod
    def coerce_ints(cls, value: Any) -> int | None:
        return _lenient_int(value)


class BasicInformationPayload(_ReleaseFields):
    resource_url: str | None = None
    thumb: str | None = None
    cover_image: str | None = None


class ReleasePayload(_ReleaseFields):
    """A catalog item: a collection entry or the full release detail."""

    images: list[ImagePayload] = Field(default_factory=list)
    tracklist: list[TrackPayload] = Field(default_factory=list)
    notes: str | None = None
    extraartists: list[ArtistPayload] = Field(default_factory=list)
    country: str | None = None
    basic_information: BasicInformationPayload | None = None

    @field_validator("images", "tracklist", "extraartists", mode="before")
    @classmethod
    def coerce_detail_lists(cls, value: Any) -> Any:
        return _none_to_list(value)

    @property
    def summary(self) -> _ReleaseFields:
        """The summary block when present (collection entries), else self."""
        return self.basic_information or self

    @property
    def release_id(self) -> int:
        if self.basic_information is not None and self.basic_information.id:
            return self.basic_information.id
        return self.id

    @property
    def resolved_master_id(self) -> int | None:
        if self.basic_information is not None and self.basic_information.master_id:
            return self.basic_information.master_id
        return self.master_id or None


class MasterPayload(_Payload):
    """Shared master record metadata."""

    id: int
    title: str | None = None
    year: int | None = None
    artists: list[ArtistPayload] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    styles: list[str] = Field(default_factory=list)
    notes: str | None = None
    extraartists: list[ArtistPayload] = Field(default_factory=list)
    data_quality: str | None = None

    @field_validator("artists", "genres", "styles", "extraartists", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> Any:
        return _none_to_list(value)

    @field_validator("year", mode="before")
    @classmethod
    def coerce_ints(cls, value: Any) -> int | None:
        return _lenient_int(value)


class PaginationPayload(_Payload):
    page: int = 1
    pages: int = 1
    per_page: int = 100
    items: int = 0


class CollectionPagePayload(_Payload):
    pagination: PaginationPayload = Field(default_factory=PaginationPayload)
    releases: list[ReleasePayload] = Field(default_factory=list)

    @field_validator("releases", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> Any:
        return _none_to_list(value)


class UserProfilePayload(_Payload):
    id: int | None = None
    username: str | None = None
    name: str | None = None
    num_collection: int | None = None


# --- Cache DTOs ---
class CacheMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    last_sync: int
    version: str
    total_records: int
    sync_duration: int = 0
    errors: list[str] | None = None


class CacheSnapshot(BaseModel):
    """Records plus metadata, exported and imported as one unit."""

    model_config = ConfigDict(extra="ignore")

    records: list[NormalizedRecord]
    metadata: CacheMetadata


__all__ = [
    "ArtistPayload",
    "BasicInformationPayload",
    "CacheMetadata",
    "CacheSnapshot",
    "CollectionPagePayload",
    "EventPayload",
    "EventPublisher",
    "FormatPayload",
    "ImagePayload",
    "LabelPayload",
    "MasterPayload",
    "PaginationPayload",
    "ReleasePayload",
    "TrackPayload",
    "UserProfilePayload",
    "noop_event_publisher",
]
