"""Normalized record domain model."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

UNKNOWN = "Unknown"


@dataclass
class Track:
    """One entry of a record's track list."""

    number: int
    title: str
    duration: str

    @classmethod
    def from_dict(cls, data: dict) -> "Track":
        return cls(
            number=int(data.get("number", 0)),
            title=str(data.get("title", "")),
            duration=str(data.get("duration", "")),
        )


@dataclass
class NormalizedRecord:
    """A catalog entry normalized for the rest of the application.

    ``id`` is the originating catalog item id as a string, so a record can be
    traced back to exactly one remote collection entry. ``master_id`` points at
    the shared master record when one was referenced.
    """

    id: str
    title: str
    artist: str
    year: str
    label: str
    catalog_number: str
    cover_url: str
    tracks: list[Track] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    description: str | None = None
    producer: str | None = None
    recording_date: str | None = None
    release_date: str | None = None
    source_item_id: str | None = None
    master_id: str | None = None

    @property
    def has_master(self) -> bool:
        return bool(self.master_id) and self.master_id != "unknown"

    def missing_fields(self) -> list[str]:
        """Names of required fields that are empty."""
        missing = [
            name
            for name in ("id", "title", "artist", "year", "label", "cover_url")
            if not getattr(self, name)
        ]
        if not self.genres:
            missing.append("genres")
        if not self.tracks:
            missing.append("tracks")
        return missing

    @property
    def is_valid(self) -> bool:
        return not self.missing_fields()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "NormalizedRecord":
        """Create a record from a dictionary (e.g. a cached JSON entry)."""
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            artist=data.get("artist", ""),
            year=str(data.get("year", "")),
            label=data.get("label", ""),
            catalog_number=data.get("catalog_number", ""),
            cover_url=data.get("cover_url", ""),
            tracks=[Track.from_dict(t) for t in data.get("tracks") or []],
            genres=list(data.get("genres") or []),
            description=data.get("description"),
            producer=data.get("producer"),
            recording_date=data.get("recording_date"),
            release_date=data.get("release_date"),
            source_item_id=data.get("source_item_id"),
            master_id=data.get("master_id"),
        )


__all__ = ["NormalizedRecord", "Track", "UNKNOWN"]
