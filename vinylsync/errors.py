"""Exception hierarchy shared by the vinylsync services.

Remote failures are split by whether retrying can help. The rate limited
client retries :class:`TransientRemoteError` subclasses and surfaces every
other :class:`RemoteServiceError` immediately.
"""

from __future__ import annotations


class VinylSyncError(Exception):
    """Base class for all vinylsync errors."""


class ConfigurationError(VinylSyncError):
    """Raised when required settings such as the API token are missing."""


# --------------------------------------------------------------------------
# Remote service errors
# --------------------------------------------------------------------------


class RemoteServiceError(VinylSyncError):
    """A request to the catalog service failed."""

    def __init__(self, message: str, *, status: int | None = None, endpoint: str | None = None):
        super().__init__(message)
        self.status = status
        self.endpoint = endpoint


class AuthError(RemoteServiceError):
    """Credentials were rejected (401, or 403 while quota remains)."""


class NotFoundError(RemoteServiceError):
    """The requested resource does not exist (404)."""


class RequestValidationError(RemoteServiceError):
    """The service refused the request parameters (400/422)."""


class TransientRemoteError(RemoteServiceError):
    """A failure that may succeed when retried."""


class RateLimitError(TransientRemoteError):
    """The service throttled the request (429, or 403 with an exhausted quota)."""


class ServerError(TransientRemoteError):
    """The service answered with a 5xx status."""


class NetworkError(TransientRemoteError):
    """Connection failure or timeout before a response was received."""


class CollectionFetchError(VinylSyncError):
    """The collection listing could not be fetched completely."""

    def __init__(self, message: str, *, page: int | None = None):
        super().__init__(message)
        self.page = page


# --------------------------------------------------------------------------
# Record, cache and sync errors
# --------------------------------------------------------------------------


class RecordValidationError(VinylSyncError):
    """A normalized record is missing required fields."""

    def __init__(self, record_id: str | None, missing: list[str]):
        super().__init__(
            f"Record {record_id or '<no id>'} is missing required fields: {', '.join(missing)}"
        )
        self.record_id = record_id
        self.missing = missing


class CacheError(VinylSyncError):
    """Reading, serialising or writing the local cache failed."""


class RecordNotFoundError(CacheError):
    """A single-record mutation referenced an id that is not cached."""


class SyncInProgressError(VinylSyncError):
    """A sync was requested while another one is still running."""


class SyncCancelledError(VinylSyncError):
    """The running sync observed a cancellation request at a checkpoint."""


__all__ = [
    "AuthError",
    "CacheError",
    "CollectionFetchError",
    "ConfigurationError",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
    "RecordNotFoundError",
    "RecordValidationError",
    "RemoteServiceError",
    "RequestValidationError",
    "ServerError",
    "SyncCancelledError",
    "SyncInProgressError",
    "TransientRemoteError",
    "VinylSyncError",
]
