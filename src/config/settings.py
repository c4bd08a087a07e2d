"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources (in priority order):
#
#   1. **Environment variables** - e.g. TICKETMASTER_API_KEY=abc123
#   2. **.env file** - key=value lines in the project root .env file
#
# Field ``event_cache_ttl`` maps to env var ``EVENT_CACHE_TTL``.
# Defaults below apply when neither source sets a value.
#
# Every duration is in SECONDS.  Rate limits are the minimum spacing
# between two outbound calls to the same provider.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """BandPulse application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === MusicBrainz (artist identity) ===
    # MusicBrainz blocks clients without a descriptive User-Agent and
    # enforces 1 req/s; 1.1 s keeps a safety margin.
    musicbrainz_base_url: str = "https://musicbrainz.org/ws/2"
    musicbrainz_user_agent: str = "BandPulse/1.0.0 (https://bandpulse.com)"
    musicbrainz_rate_limit: float = Field(default=1.1, ge=0.0)
    musicbrainz_timeout: float = Field(default=10.0, gt=0.0)

    # === Ticketmaster Discovery (concert listings) ===
    # Free tier: 5 req/s, 5000 calls/day.
    ticketmaster_base_url: str = "https://app.ticketmaster.com/discovery/v2"
    ticketmaster_inventory_url: str = (
        "https://app.ticketmaster.com/inventory-status/v1/availability"
    )
    ticketmaster_api_key: str = ""
    ticketmaster_rate_limit: float = Field(default=0.22, ge=0.0)
    ticketmaster_timeout: float = Field(default=15.0, gt=0.0)

    # === Cache TTLs ===
    artist_cache_ttl: float = Field(default=604800.0, gt=0.0)  # 7 days
    event_cache_ttl: float = Field(default=86400.0, gt=0.0)  # 1 day
    tm_http_cache_ttl: float = Field(default=600.0, gt=0.0)  # raw provider responses
    mb_http_cache_ttl: float = Field(default=600.0, gt=0.0)
    location_cache_max_ttl: float = Field(default=1800.0, gt=0.0)
    attraction_id_cache_ttl: float = Field(default=604800.0, gt=0.0)

    # === Cache housekeeping ===
    cache_sweep_interval: float = Field(default=300.0, gt=0.0)
    cache_stats_interval: int = Field(default=50, ge=0)  # 0 disables stats logging

    # === Geo-grid snapping ===
    # 1 decimal ≈ 11 km cells; radius rounded UP to the next step.
    geo_coord_decimals: int = Field(default=1, ge=0)
    geo_radius_step_km: float = Field(default=25.0, gt=0.0)

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 3001
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000"

    def get_cors_origins(self) -> list[str]:
        """Return the comma-separated ``cors_origins`` value as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def get_configured_providers(self) -> list[str]:
        """Return the names of upstream providers that can be called."""
        providers = ["musicbrainz"]  # keyless
        if self.ticketmaster_api_key:
            providers.append("ticketmaster")
        return providers
