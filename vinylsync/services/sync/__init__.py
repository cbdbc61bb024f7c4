"""Sync services for mirroring the remote collection into the local cache.

Public API:
  - SyncOrchestrator - runs a full sync and exposes the cache operations
  - SyncResult, SyncProgress, CancellationToken - run outcome and progress
  - CollectionFetcher - paginated collection listing
  - EnrichmentEngine, EnrichedItem - release detail and master lookups
  - RecordTransformer - normalization into ``NormalizedRecord``
  - RateLimitedClient, RateLimiter - request pacing and retries
"""

from .collection import CollectionFetcher
from .enrichment import EnrichedItem, EnrichmentEngine
from .fetcher import RateLimitedClient, RateLimiter
from .orchestrator import CancellationToken, SyncOrchestrator, SyncResult
from .progress import SyncProgress
from .transform import (
    RecordTransformer,
    clean_discogs_markup,
    clean_text,
    filter_valid_records,
    generate_fallback_cover,
    parse_duration,
    validate_record,
)

__all__ = [
    # === Request pacing
    "RateLimitedClient",
    "RateLimiter",
    # === Pipeline stages
    "CollectionFetcher",
    "EnrichedItem",
    "EnrichmentEngine",
    "RecordTransformer",
    # === Orchestration
    "CancellationToken",
    "SyncOrchestrator",
    "SyncProgress",
    "SyncResult",
    # === Text and record helpers
    "clean_discogs_markup",
    "clean_text",
    "filter_valid_records",
    "generate_fallback_cover",
    "parse_duration",
    "validate_record",
]
