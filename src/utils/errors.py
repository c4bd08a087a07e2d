"""Custom exception hierarchy for BandPulse.

All application exceptions inherit from :class:`BandPulseError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "musicbrainz", "ticketmaster") caused the failure.

The hierarchy follows the life of an upstream call:

    BandPulseError  (base -- catch-all for any BandPulse error)
    +-- ProviderError              (one upstream call failed)
    |   +-- ProviderTimeoutError   (the call exceeded its fixed timeout)
    |   +-- ProviderHTTPError      (upstream answered 4xx / 5xx)
    +-- ProviderUnavailableError   (no fresh data AND no stale fallback)
    +-- ConfigurationError         (startup / missing config)

A cache miss is *not* an error: caches return ``None``.  Provider clients
catch :class:`ProviderError` internally and fall back to stale cached data;
only when nothing at all is cached does a :class:`ProviderUnavailableError`
reach the caller.  A failed background refresh is only logged: no caller
ever waits on one.
"""


class BandPulseError(Exception):
    """Base exception for all BandPulse errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[ticketmaster] Request timed out``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Upstream call failures
# ---------------------------------------------------------------------------


class ProviderError(BandPulseError):
    """Raised when a single upstream call fails (timeout, HTTP error, transport)."""

    def __init__(
        self,
        message: str = "Upstream provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderTimeoutError(ProviderError):
    """Raised when an upstream call exceeds its fixed timeout.

    Handled exactly like any other :class:`ProviderError` -- it triggers the
    stale-fallback path rather than a separate recovery strategy.
    """

    def __init__(
        self,
        message: str = "Upstream provider timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderHTTPError(ProviderError):
    """Raised when an upstream provider answers with a 4xx / 5xx status."""

    def __init__(
        self,
        message: str = "Upstream provider returned an error status",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self._status_code = status_code
        super().__init__(message=message, provider_name=provider_name)

    @property
    def status_code(self) -> int | None:
        return self._status_code


# ---------------------------------------------------------------------------
# Caller-facing failures
# ---------------------------------------------------------------------------


class ProviderUnavailableError(BandPulseError):
    """Raised when an upstream call failed and no cached value exists.

    This is the only upstream failure a foreground read can observe: a cold
    cache key combined with a failed provider call.
    """

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(BandPulseError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
