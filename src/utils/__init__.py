"""Utility modules for BandPulse.

Available utility modules (all re-exported here for convenience):

- **errors** -- Exception hierarchy rooted at BandPulseError; provider
  failures, unavailable upstreams and background refresh failures each get
  their own subclass so callers can handle them without broad
  ``except Exception`` blocks.
- **concurrency** -- the per-provider RateLimitedQueue and the semaphore
  bounded ``throttled_gather`` fan-out helper.
- **geo** -- grid snapping that turns location queries into coarse cache
  keys.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    BandPulseError,
    ConfigurationError,
    ProviderError,
    ProviderHTTPError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import RateLimitedQueue, throttled_gather

# -- Geo-grid cache keys ---------------------------------------------------
from src.utils.geo import filter_fingerprint, geo_cache_key, snap_coord, snap_radius

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "BandPulseError",
    "ConfigurationError",
    "ProviderError",
    "ProviderHTTPError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "RateLimitedQueue",
    "configure_logging",
    "filter_fingerprint",
    "geo_cache_key",
    "get_logger",
    "snap_coord",
    "snap_radius",
    "throttled_gather",
]
