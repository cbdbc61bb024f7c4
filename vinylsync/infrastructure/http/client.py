"""HTTP access to the Discogs catalog service.

This module binds the four remote endpoints the sync pipeline needs (the
paginated collection listing, release detail, master release and user
profile) on top of a small transport abstraction. Responses are classified
into the :mod:`vinylsync.errors` taxonomy and validated against the payload
schemas in :mod:`vinylsync.services.dto` before they leave this module.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

import aiohttp
from pydantic import BaseModel, ValidationError

from vinylsync.app.config import SyncSettings
from vinylsync.errors import (
    AuthError,
    ConfigurationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RemoteServiceError,
    RequestValidationError,
    ServerError,
)
from vinylsync.infrastructure.observability import get_logger, record_rate_limit_usage
from vinylsync.services.dto import (
    CollectionPagePayload,
    MasterPayload,
    ReleasePayload,
    UserProfilePayload,
)
from vinylsync.services.sync.fetcher import RateLimitedClient

logger = get_logger(__name__)

RATE_LIMIT_HEADER = "x-discogs-ratelimit"
RATE_LIMIT_USED_HEADER = "x-discogs-ratelimit-used"
RATE_LIMIT_REMAINING_HEADER = "x-discogs-ratelimit-remaining"


@dataclass
class HttpResponse:
    """Transport-neutral response. Header names are lower-cased."""

    status: int
    payload: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, status: int, payload: Any = None, headers: Mapping[str, str] | None = None):
        return cls(
            status=status,
            payload=payload,
            headers={k.lower(): v for k, v in (headers or {}).items()},
        )


class Transport(Protocol):
    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, str],
        headers: Mapping[str, str],
        timeout: float,
    ) -> HttpResponse: ...

    async def close(self) -> None: ...


class AiohttpTransport:
    """Transport backed by a lazily created :class:`aiohttp.ClientSession`."""

    def __init__(self, session: aiohttp.ClientSession | None = None) -> None:
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, str],
        headers: Mapping[str, str],
        timeout: float,
    ) -> HttpResponse:
        session = await self._ensure_session()
        try:
            async with session.get(
                url,
                params=dict(params),
                headers=dict(headers),
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                try:
                    payload = await resp.json(content_type=None)
                except ValueError:
                    payload = None
                return HttpResponse.build(resp.status, payload, resp.headers)
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"Request to {url} timed out") from exc
        except aiohttp.ClientError as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()


@dataclass
class ConnectionCheck:
    """Outcome of :meth:`DiscogsApiClient.test_connection`."""

    success: bool
    message: str
    user_info: UserProfilePayload | None = None


def _header_int(headers: Mapping[str, str], name: str) -> int | None:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def raise_for_status(response: HttpResponse, endpoint: str) -> None:
    """Raise the matching :mod:`vinylsync.errors` exception for error statuses."""
    status = response.status
    if status < 400:
        return
    message = ""
    if isinstance(response.payload, dict):
        message = str(response.payload.get("message") or "")
    detail = message or "Unknown error"
    if status == 401:
        raise AuthError(
            "Invalid Discogs API token. Please check your credentials.",
            status=status,
            endpoint=endpoint,
        )
    if status == 429 or (
        status == 403 and _header_int(response.headers, RATE_LIMIT_REMAINING_HEADER) == 0
    ):
        raise RateLimitError(
            "Rate limit exceeded. Please wait before making more requests.",
            status=status,
            endpoint=endpoint,
        )
    if status == 403:
        raise AuthError(
            f"Permission denied for {endpoint}: {detail}", status=status, endpoint=endpoint
        )
    if status == 404:
        raise NotFoundError("Resource not found.", status=status, endpoint=endpoint)
    if status in (400, 422):
        raise RequestValidationError(
            f"Invalid parameters: {detail}", status=status, endpoint=endpoint
        )
    if status >= 500:
        raise ServerError(
            f"Discogs API Error: {status} - {detail}", status=status, endpoint=endpoint
        )
    raise RemoteServiceError(
        f"Discogs API Error: {status} - {detail}", status=status, endpoint=endpoint
    )


class DiscogsApiClient:
    """Endpoint bindings for the catalog service, executed through a rate limited client."""

    def __init__(
        self,
        settings: SyncSettings,
        *,
        transport: Transport | None = None,
        executor: RateLimitedClient | None = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.transport: Transport = transport or AiohttpTransport()
        self.executor = executor or RateLimitedClient.from_settings(settings)
        self.last_rate_limit: dict[str, int | None] = {}

    async def __aenter__(self) -> "DiscogsApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    # -------------------- request helpers --------------------
    def _headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": self.settings.user_agent,
            "Accept": "application/vnd.discogs.v2.discogs+json",
        }
        if self.settings.token:
            headers["Authorization"] = f"Discogs token={self.settings.token}"
        return headers

    def _require_username(self, username: str | None = None) -> str:
        user = username or self.settings.username
        if not user:
            raise ConfigurationError("Username not configured for the Discogs account")
        return user

    def _record_rate_limit(self, headers: Mapping[str, str]) -> None:
        used = _header_int(headers, RATE_LIMIT_USED_HEADER)
        remaining = _header_int(headers, RATE_LIMIT_REMAINING_HEADER)
        if used is None and remaining is None:
            return
        self.last_rate_limit = {
            "limit": _header_int(headers, RATE_LIMIT_HEADER),
            "used": used,
            "remaining": remaining,
        }
        record_rate_limit_usage(used, remaining)
        logger.debug("Discogs API: %s requests used, %s remaining", used, remaining)

    async def _get_json(
        self, path: str, params: Mapping[str, Any] | None = None, *, endpoint: str
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        query = {k: str(v) for k, v in (params or {}).items()}

        async def _once() -> dict[str, Any]:
            response = await self.transport.get(
                url,
                params=query,
                headers=self._headers(),
                timeout=self.settings.timeout_seconds,
            )
            self._record_rate_limit(response.headers)
            raise_for_status(response, endpoint)
            if not isinstance(response.payload, dict):
                raise ServerError(
                    f"Unexpected non-JSON response from {endpoint}",
                    status=response.status,
                    endpoint=endpoint,
                )
            return response.payload

        return await self.executor.execute(_once, label=endpoint)

    @staticmethod
    def _parse(model: type[BaseModel], payload: dict[str, Any], endpoint: str):
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise RemoteServiceError(
                f"Malformed {endpoint} payload: {exc.error_count()} validation error(s)",
                endpoint=endpoint,
            ) from exc

    # -------------------- endpoints --------------------
    async def get_collection_page(
        self, page: int = 1, per_page: int | None = None
    ) -> CollectionPagePayload:
        """Return one page of the user's collection, newest additions first."""
        user = self._require_username()
        params = {
            "page": page,
            "per_page": min(per_page or self.settings.per_page, 100),
            "sort": "added",
            "sort_order": "desc",
        }
        payload = await self._get_json(
            f"/users/{user}/collection/folders/0/releases", params, endpoint="collection"
        )
        return self._parse(CollectionPagePayload, payload, "collection")

    async def get_release(self, release_id: int) -> ReleasePayload:
        payload = await self._get_json(f"/releases/{release_id}", endpoint="release")
        return self._parse(ReleasePayload, payload, "release")

    async def get_master(self, master_id: int) -> MasterPayload:
        payload = await self._get_json(f"/masters/{master_id}", endpoint="master")
        return self._parse(MasterPayload, payload, "master")

    async def get_user_profile(self, username: str | None = None) -> UserProfilePayload:
        user = self._require_username(username)
        payload = await self._get_json(f"/users/{user}", endpoint="profile")
        return self._parse(UserProfilePayload, payload, "profile")

    async def test_connection(self) -> ConnectionCheck:
        """Check credentials against the profile endpoint. Never raises."""
        if not self.settings.token:
            return ConnectionCheck(False, "No API token configured for the Discogs account")
        if not self.settings.username:
            return ConnectionCheck(False, "No username configured for the Discogs account")
        try:
            profile = await self.get_user_profile()
        except RemoteServiceError as exc:
            return ConnectionCheck(False, f"Failed to connect to Discogs API: {exc}")
        return ConnectionCheck(
            True,
            f"Successfully connected to Discogs API as {profile.username or self.settings.username}",
            profile,
        )


__all__ = [
    "AiohttpTransport",
    "ConnectionCheck",
    "DiscogsApiClient",
    "HttpResponse",
    "Transport",
    "raise_for_status",
]
