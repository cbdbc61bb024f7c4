"""Normalization of enriched catalog items into :class:`NormalizedRecord`.

The transformer is pure apart from the random source used for placeholder
durations, which callers may inject. :meth:`RecordTransformer.normalize`
never raises; missing data degrades to documented defaults and anything the
defaults cannot cover is caught later by :func:`validate_record`.
"""

from __future__ import annotations

import random
import re
from collections.abc import Iterable

from vinylsync.domain.models import UNKNOWN, NormalizedRecord, Track
from vinylsync.errors import RecordValidationError
from vinylsync.infrastructure.observability import get_logger
from vinylsync.services.dto import ArtistPayload, MasterPayload, ReleasePayload

logger = get_logger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_LABEL = "Unknown Label"
NO_CATALOG_NUMBER = "N/A"
MAX_TEXT_LENGTH = 1000

FALLBACK_COVER_BASE = (
    "https://images.unsplash.com/photo-1571974599782-87624638275d"
    "?w=400&h=400&fit=crop&auto=format&q=80"
)
PLACEHOLDER_TRACK_TITLES = (
    "Opening",
    "Melody",
    "Interlude",
    "Rhythm",
    "Finale",
    "Theme",
    "Variation",
    "Coda",
)
MIN_RANDOM_DURATION = 150
MAX_RANDOM_DURATION = 510

_MARKUP_RE = re.compile(r"\[\w+=([^\]]+)\]")
_EMPTY_BRACKETS_RE = re.compile(r"\[\]")
_DISALLOWED_RE = re.compile(r"[^\w\s\-.,!?()&\"']")
_WHITESPACE_RE = re.compile(r"\s+")
_RECORDED_IN_RE = re.compile(r"recorded\s+in\s+(\w+\s+\d{4})", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def clean_discogs_markup(text: str | None) -> str:
    """Replace ``[a=Name]`` style cross references with their display text."""
    if not text:
        return ""
    return _EMPTY_BRACKETS_RE.sub("", _MARKUP_RE.sub(r"\1", text))


def clean_text(text: str | None) -> str:
    """Return display-safe text.

    Markup is resolved, characters outside word characters, whitespace and
    ``-.,!?()&"'`` are dropped, whitespace runs collapse to one space and
    the result is trimmed and capped at 1000 characters. Applying it twice
    gives the same result as applying it once.
    """
    if not text:
        return ""
    cleaned = _DISALLOWED_RE.sub("", clean_discogs_markup(text))
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    return cleaned[:MAX_TEXT_LENGTH].rstrip()


def parse_duration(duration: str | None) -> int:
    """Parse ``"M:SS"`` into seconds; anything else yields 0."""
    if not duration:
        return 0
    parts = duration.split(":")
    if len(parts) != 2:
        return 0

    def _part(value: str) -> int:
        try:
            return int(value)
        except ValueError:
            return 0

    return _part(parts[0]) * 60 + _part(parts[1])


def format_duration(seconds: int) -> str:
    return f"{seconds // 60}:{seconds % 60:02d}"


def _simple_hash(value: str) -> int:
    h = 0
    for ch in value:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def generate_fallback_cover(record_id: str, title: str) -> str:
    """Deterministic placeholder cover URL tinted by a hash of id and title."""
    h = _simple_hash(f"{record_id}{title}")
    hue = h % 360
    sat = 60 + h % 40
    brightness = 0 if h % 2 == 0 else -20
    return f"{FALLBACK_COVER_BASE}&hue={hue}&sat={sat}&brightness={brightness}"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_record(record: NormalizedRecord) -> NormalizedRecord:
    """Return ``record`` unchanged or raise :class:`RecordValidationError`."""
    missing = record.missing_fields()
    if missing:
        raise RecordValidationError(record.id or None, missing)
    return record


def filter_valid_records(
    records: Iterable[NormalizedRecord],
) -> tuple[list[NormalizedRecord], list[RecordValidationError]]:
    """Split records into valid ones and the validation errors of the rest."""
    valid: list[NormalizedRecord] = []
    rejected: list[RecordValidationError] = []
    for record in records:
        try:
            valid.append(validate_record(record))
        except RecordValidationError as exc:
            logger.warning("Dropping invalid record: %s", exc)
            rejected.append(exc)
    return valid, rejected


# ---------------------------------------------------------------------------
# Transformer
# ---------------------------------------------------------------------------


def _positive_year(year: int | None) -> str | None:
    return str(year) if year and year > 0 else None


def _join_artists(artists: list[ArtistPayload]) -> str | None:
    names = [a.name for a in artists if a.name]
    return ", ".join(names) if names else None


def _valid_genres(genres: list[str]) -> list[str]:
    return [g for g in genres if g and g.strip() and g != UNKNOWN]


def _find_producer(credits: list[ArtistPayload]) -> str | None:
    for credit in credits:
        if credit.role and "producer" in credit.role.lower() and credit.name:
            return credit.name
    return None


class RecordTransformer:
    """Maps an item plus optional master record onto a :class:`NormalizedRecord`."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def _random_duration(self) -> str:
        return format_duration(self.rng.randint(MIN_RANDOM_DURATION, MAX_RANDOM_DURATION))

    # --- field rules -----------------------------------------------------
    @staticmethod
    def resolve_year(item: ReleasePayload, master: MasterPayload | None) -> str:
        if master is not None:
            year = _positive_year(master.year)
            if year:
                return year
        return _positive_year(item.summary.year) or _positive_year(item.year) or UNKNOWN

    @staticmethod
    def resolve_genres(item: ReleasePayload, master: MasterPayload | None) -> list[str]:
        source = master.genres if master is not None else item.summary.genres
        return _valid_genres(source) or [UNKNOWN]

    @staticmethod
    def resolve_cover(item: ReleasePayload, record_id: str, title: str) -> str:
        if item.images:
            primary = next((img for img in item.images if img.type == "primary"), item.images[0])
            url = primary.uri500 or primary.uri or primary.uri150
            if url:
                return url
        basic = item.basic_information
        if basic is not None and basic.cover_image:
            return basic.cover_image
        if basic is not None and basic.thumb:
            return basic.thumb
        return generate_fallback_cover(record_id, title)

    def build_tracks(self, item: ReleasePayload) -> list[Track]:
        tracks = [
            Track(
                number=position,
                title=entry.title.strip(),
                duration=entry.duration or self._random_duration(),
            )
            for position, entry in enumerate(item.tracklist, start=1)
            if entry.title and entry.title.strip()
        ]
        if tracks:
            return tracks
        count = self.rng.randint(4, 6)
        return [
            Track(number=i + 1, title=PLACEHOLDER_TRACK_TITLES[i], duration=self._random_duration())
            for i in range(count)
        ]

    @staticmethod
    def compose_description(item: ReleasePayload, artist: str, year: str) -> str:
        summary = item.summary
        parts: list[str] = []
        if summary.formats:
            fmt = summary.formats[0]
            descriptions = ", ".join(fmt.descriptions)
            parts.append(f"{fmt.name or 'Vinyl'}{f' ({descriptions})' if descriptions else ''}")
        if summary.styles:
            parts.append(f"Style: {', '.join(summary.styles)}")
        if item.country:
            parts.append(f"Released in {item.country}")
        notes = clean_text(item.notes)
        if notes:
            parts.append(notes)
        if not parts:
            return f"A classic release by {artist} from {year}."
        return ". ".join(p.rstrip(".") for p in parts) + "."

    @staticmethod
    def recording_date(item: ReleasePayload, master: MasterPayload | None) -> str | None:
        if master is not None:
            return _positive_year(master.year)
        match = _RECORDED_IN_RE.search(clean_discogs_markup(item.notes))
        if match:
            return match.group(1)
        return _positive_year(item.summary.year) or _positive_year(item.year)

    # --- entry point -----------------------------------------------------
    def normalize(
        self,
        item: ReleasePayload,
        master: MasterPayload | None = None,
        index: int = 0,
    ) -> NormalizedRecord:
        """Build the normalized record for one item. Never raises."""
        summary = item.summary
        record_id = str(item.release_id)
        master_id = item.resolved_master_id

        if master is not None:
            artist = _join_artists(master.artists) or _join_artists(summary.artists)
            title = master.title or summary.title
        else:
            artist = _join_artists(summary.artists)
            title = summary.title
        artist = artist or UNKNOWN_ARTIST
        title = title or UNKNOWN_TITLE
        year = self.resolve_year(item, master)
        if year == UNKNOWN:
            logger.debug("No year available for %r (item %s, index %d)", title, record_id, index)

        label = summary.labels[0] if summary.labels else None
        description = clean_text(master.notes) if master is not None else ""
        producer = _find_producer(master.extraartists) if master is not None else None

        return NormalizedRecord(
            id=record_id,
            title=title,
            artist=artist,
            year=year,
            label=(label.name if label and label.name else UNKNOWN_LABEL),
            catalog_number=(label.catno if label and label.catno else NO_CATALOG_NUMBER),
            cover_url=self.resolve_cover(item, record_id, title),
            tracks=self.build_tracks(item),
            genres=self.resolve_genres(item, master),
            description=description or self.compose_description(item, artist, year),
            producer=producer or _find_producer(item.extraartists),
            recording_date=self.recording_date(item, master),
            release_date=_positive_year(summary.year) or _positive_year(item.year) or UNKNOWN,
            source_item_id=record_id,
            master_id=str(master_id) if master_id else None,
        )


__all__ = [
    "RecordTransformer",
    "clean_discogs_markup",
    "clean_text",
    "filter_valid_records",
    "format_duration",
    "generate_fallback_cover",
    "parse_duration",
    "validate_record",
]
