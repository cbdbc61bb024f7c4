import asyncio

import pytest

from discogs_fakes import SETTINGS, ScriptedTransport, error_response, master_detail, ok
from vinylsync.app.config import SyncSettings
from vinylsync.errors import (
    AuthError,
    ConfigurationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RemoteServiceError,
    RequestValidationError,
)
from vinylsync.infrastructure.http import DiscogsApiClient
from vinylsync.services.sync import RateLimitedClient


async def _no_sleep(_delay: float) -> None:
    return None


def _client(transport: ScriptedTransport, settings: SyncSettings = SETTINGS) -> DiscogsApiClient:
    executor = RateLimitedClient(rate_limit=None, max_retries=3, sleep=_no_sleep)
    return DiscogsApiClient(settings, transport=transport, executor=executor)


def test_collection_page_sends_auth_headers_and_params() -> None:
    transport = ScriptedTransport(
        {
            "/folders/0/releases": [
                ok({"pagination": {"page": 1, "pages": 1, "items": 0}, "releases": []})
            ]
        }
    )
    page = asyncio.run(_client(transport).get_collection_page(1))

    url, params, headers = transport.requests[0]
    assert url == "https://api.discogs.com/users/digger/collection/folders/0/releases"
    assert params == {"page": "1", "per_page": "100", "sort": "added", "sort_order": "desc"}
    assert headers["Authorization"] == "Discogs token=secret"
    assert headers["Accept"] == "application/vnd.discogs.v2.discogs+json"
    assert headers["User-Agent"] == "VinylSync/1.0"
    assert page.pagination.pages == 1
    assert page.releases == []


def test_unauthorized_is_not_retried() -> None:
    transport = ScriptedTransport({"/releases/1": [error_response(401), ok({"id": 1})]})
    with pytest.raises(AuthError):
        asyncio.run(_client(transport).get_release(1))
    assert len(transport.requests) == 1


def test_forbidden_with_exhausted_quota_is_retried_as_rate_limit() -> None:
    transport = ScriptedTransport(
        {
            "/masters/7": [
                error_response(403, {"X-Discogs-Ratelimit-Remaining": "0"}),
                ok(master_detail(7), {"X-Discogs-Ratelimit-Used": "3", "X-Discogs-Ratelimit-Remaining": "57"}),
            ]
        }
    )
    client = _client(transport)
    master = asyncio.run(client.get_master(7))

    assert master.id == 7
    assert len(transport.requests) == 2
    assert client.last_rate_limit == {"limit": None, "used": 3, "remaining": 57}


def test_forbidden_with_quota_left_is_auth_error() -> None:
    transport = ScriptedTransport({"/masters/7": [error_response(403, message="private")]})
    with pytest.raises(AuthError) as excinfo:
        asyncio.run(_client(transport).get_master(7))
    assert excinfo.value.status == 403


@pytest.mark.parametrize(
    "status_code, error_type",
    [(404, NotFoundError), (422, RequestValidationError), (400, RequestValidationError)],
)
def test_client_errors_map_to_taxonomy(status_code, error_type) -> None:
    transport = ScriptedTransport({"/releases/9": [error_response(status_code)]})
    with pytest.raises(error_type):
        asyncio.run(_client(transport).get_release(9))
    assert len(transport.requests) == 1


def test_server_and_network_errors_are_retried() -> None:
    transport = ScriptedTransport(
        {
            "/releases/3": [
                error_response(503),
                NetworkError("connection reset"),
                ok({"id": 3, "title": "Kind of Blue"}),
            ]
        }
    )
    release = asyncio.run(_client(transport).get_release(3))
    assert release.title == "Kind of Blue"
    assert len(transport.requests) == 3


def test_rate_limit_exhausted_after_retries() -> None:
    transport = ScriptedTransport({"/releases/3": [error_response(429)] * 4})
    with pytest.raises(RateLimitError):
        asyncio.run(_client(transport).get_release(3))
    assert len(transport.requests) == 4


def test_malformed_payload_raises_remote_service_error() -> None:
    transport = ScriptedTransport({"/releases/3": [ok({"title": "no id"})]})
    with pytest.raises(RemoteServiceError) as excinfo:
        asyncio.run(_client(transport).get_release(3))
    assert "Malformed release payload" in str(excinfo.value)


def test_missing_username_is_configuration_error() -> None:
    transport = ScriptedTransport()
    client = _client(transport, SyncSettings(token="secret"))
    with pytest.raises(ConfigurationError):
        asyncio.run(client.get_collection_page(1))
    assert transport.requests == []


def test_test_connection_without_token_makes_no_request() -> None:
    transport = ScriptedTransport()
    check = asyncio.run(_client(transport, SyncSettings(username="digger")).test_connection())
    assert not check.success
    assert "token" in check.message
    assert transport.requests == []


def test_test_connection_reports_failure_without_raising() -> None:
    transport = ScriptedTransport({"/users/digger": [error_response(401)]})
    check = asyncio.run(_client(transport).test_connection())
    assert not check.success
    assert check.message.startswith("Failed to connect to Discogs API")


def test_test_connection_success_returns_profile() -> None:
    transport = ScriptedTransport(
        {"/users/digger": [ok({"id": 1, "username": "digger", "num_collection": 250})]}
    )
    check = asyncio.run(_client(transport).test_connection())
    assert check.success
    assert check.user_info is not None
    assert check.user_info.num_collection == 250


def test_async_context_manager_closes_transport() -> None:
    transport = ScriptedTransport()

    async def run() -> None:
        async with _client(transport):
            pass

    asyncio.run(run())
    assert transport.closed
