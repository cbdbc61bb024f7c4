from .client import (
    AiohttpTransport,
    ConnectionCheck,
    DiscogsApiClient,
    HttpResponse,
    Transport,
    raise_for_status,
)

__all__ = [
    "AiohttpTransport",
    "ConnectionCheck",
    "DiscogsApiClient",
    "HttpResponse",
    "Transport",
    "raise_for_status",
]
