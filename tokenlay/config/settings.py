"""SDK settings loaded from environment variables."""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

DEFAULT_TOKENLAY_BASE_URL = "https://api.tokenlay.com"
DEFAULT_PROVIDER_API_BASE = "https://api.openai.com/v1"


class Settings(BaseSettings):
    # Tokenlay proxy
    tokenlay_key: str = ""
    tokenlay_base_url: str = DEFAULT_TOKENLAY_BASE_URL

    # Upstream LLM provider, forwarded to the proxy as headers
    provider_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("provider_api_key", "openai_api_key"),
    )
    provider_api_base: str = DEFAULT_PROVIDER_API_BASE

    # Wrapped client behaviour
    tokenlay_timeout_ms: int = 60000
    tokenlay_max_retries: int = 2

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
