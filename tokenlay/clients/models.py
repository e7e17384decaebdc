"""Client configuration models."""

from dataclasses import dataclass, field

import httpx

from tokenlay.config.settings import (
    DEFAULT_PROVIDER_API_BASE,
    DEFAULT_TOKENLAY_BASE_URL,
    Settings,
)


@dataclass
class TokenlayOptions:
    tokenlay_key: str
    provider_api_key: str
    provider_api_base: str = DEFAULT_PROVIDER_API_BASE
    tokenlay_base_url: str = DEFAULT_TOKENLAY_BASE_URL
    metadata: dict[str, str] | None = None  # sent with every request
    extra_headers: dict[str, str] | None = None
    timeout: int = 60000  # milliseconds
    max_retries: int = 2
    http_client: httpx.AsyncClient | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "TokenlayOptions":
        """Build options from environment-backed settings; kwargs win."""
        values = {
            "tokenlay_key": settings.tokenlay_key,
            "provider_api_key": settings.provider_api_key,
            "provider_api_base": settings.provider_api_base,
            "tokenlay_base_url": settings.tokenlay_base_url,
            "timeout": settings.tokenlay_timeout_ms,
            "max_retries": settings.tokenlay_max_retries,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class HealthStatus:
    status: str  # "ok" | "error"
    message: str | None = None

    def to_dict(self) -> dict:
        if self.message is None:
            return {"status": self.status}
        return {"status": self.status, "message": self.message}
