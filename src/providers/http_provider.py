"""Base class for rate-limited, response-caching HTTP providers.

Every external data provider (MusicBrainz, Ticketmaster) is reached through a
subclass of :class:`RateLimitedHTTPProvider`, which owns three things:

* an injected, shared ``httpx.AsyncClient`` (connection pooling),
* its own :class:`~src.utils.concurrency.RateLimitedQueue`,
* its own response :class:`~src.providers.cache.ttl_cache.TTLCache` instances.

# ─── THE READ PATH (_fetch) ───────────────────────────────────────────
#
#   1. response cache hit?        → return it (no rate-limit slot consumed)
#   2. wait for a queue slot      → RateLimitedQueue.schedule()
#   3. GET with a fixed timeout   → raise_for_status()
#   4. success                    → cache raw payload, return it
#   5. ANY upstream failure       → last known payload (even expired)
#                                   or ProviderUnavailableError
#
# A timeout is just another upstream failure.  Only the raw payload is
# cached; subclasses map it to domain records on every read.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import structlog

from src.providers.cache.ttl_cache import CacheStats, TTLCache
from src.utils.concurrency import RateLimitedQueue
from src.utils.errors import (
    ConfigurationError,
    ProviderError,
    ProviderHTTPError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from src.utils.logging import get_logger


class RateLimitedHTTPProvider:
    """Shared plumbing for provider clients.

    Parameters
    ----------
    http_client:
        Injected ``httpx.AsyncClient``.  The provider never closes it.
    base_url:
        Provider API root; request paths are appended to it.
    rate_limiter:
        Queue enforcing the provider's minimum request spacing.
    timeout:
        Fixed per-request timeout in seconds.
    headers:
        Headers sent with every request (e.g. the mandatory User-Agent).
    """

    provider_name: str = "http"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        rate_limiter: RateLimitedQueue,
        *,
        timeout: float,
        headers: dict[str, str] | None = None,
    ) -> None:
        if not base_url:
            raise ConfigurationError(
                message="Provider base URL is not configured",
                provider_name=self.provider_name,
            )
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._rate_limiter = rate_limiter
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._caches: list[TTLCache[Any]] = []
        self._logger: structlog.BoundLogger = get_logger(__name__).bind(
            provider=self.provider_name
        )

    # ------------------------------------------------------------------
    # Lifecycle & observability
    # ------------------------------------------------------------------

    def get_provider_name(self) -> str:
        return self.provider_name

    @property
    def rate_limiter(self) -> RateLimitedQueue:
        return self._rate_limiter

    def start(self) -> None:
        """Start the periodic sweep of every response cache."""
        for cache in self._caches:
            cache.start()

    async def close(self) -> None:
        """Stop the sweepers and drop cached responses."""
        for cache in self._caches:
            await cache.close()

    def cache_stats(self) -> dict[str, CacheStats]:
        return {cache.name: cache.stats() for cache in self._caches}

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _register_cache(self, cache: TTLCache[Any]) -> TTLCache[Any]:
        self._caches.append(cache)
        return cache

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _fetch(
        self,
        cache: TTLCache[Any],
        cache_key: str,
        url: str,
        params: dict[str, Any],
        *,
        allow_not_found: bool = False,
    ) -> Any | None:
        """Return the payload for *cache_key*, calling upstream only on a miss.

        Returns ``None`` only for a 404 when *allow_not_found* is set; a
        not-found answer is never cached.

        Raises
        ------
        ProviderUnavailableError
            If the upstream call failed and no response, fresh or expired,
            was ever cached under *cache_key*.
        """
        last_known, is_fresh = cache.lookup(cache_key)
        if is_fresh and last_known is not None:
            self._logger.debug("provider_cache_hit", cache=cache.name, key=cache_key)
            return last_known

        try:
            payload = await self._request(url, params)
        except ProviderHTTPError as exc:
            if allow_not_found and exc.status_code == 404:
                self._logger.info("provider_not_found", key=cache_key)
                return None
            return self._fallback(cache, cache_key, last_known, exc)
        except ProviderError as exc:
            return self._fallback(cache, cache_key, last_known, exc)

        cache.set(cache_key, payload)
        return payload

    async def _request(self, url: str, params: dict[str, Any]) -> Any:
        """Wait for a rate-limit slot, then GET *url* and decode the JSON body.

        Raises
        ------
        ProviderTimeoutError
            The call exceeded ``timeout``.
        ProviderHTTPError
            Upstream answered with a 4xx / 5xx status.
        ProviderError
            Transport failure or an undecodable body.
        """
        await self._rate_limiter.schedule()

        started = time.perf_counter()
        try:
            response = await self._http.get(
                url,
                params=params,
                headers=self._headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(
                message=f"Request to {url} timed out after {self._timeout}s",
                provider_name=self.provider_name,
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise ProviderHTTPError(
                message=f"HTTP {status} from {url}",
                provider_name=self.provider_name,
                status_code=status,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                message=f"Request to {url} failed: {exc}",
                provider_name=self.provider_name,
            ) from exc
        except ValueError as exc:
            raise ProviderError(
                message=f"Invalid JSON from {url}: {exc}",
                provider_name=self.provider_name,
            ) from exc

        self._logger.debug(
            "provider_call",
            url=url,
            status=response.status_code,
            latency_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return payload

    def _fallback(
        self,
        cache: TTLCache[Any],
        cache_key: str,
        last_known: Any | None,
        exc: ProviderError,
    ) -> Any:
        self._logger.error(
            "provider_call_failed",
            cache=cache.name,
            key=cache_key,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        if last_known is None:
            last_known = cache.get_stale(cache_key)
        if last_known is not None:
            self._logger.warning("provider_serving_stale", cache=cache.name, key=cache_key)
            return last_known
        raise ProviderUnavailableError(
            message=f"{exc.message} (no cached response for '{cache_key}')",
            provider_name=self.provider_name,
        ) from exc
