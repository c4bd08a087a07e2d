"""BandPulse API layer - routes, schemas, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    ArtistListResponse,
    ArtistResponse,
    ErrorResponse,
    EventListResponse,
    EventResponse,
    HealthResponse,
)

__all__ = [
    "ArtistListResponse",
    "ArtistResponse",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "EventListResponse",
    "EventResponse",
    "HealthResponse",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
]
