"""Construction-time checks and proxy URL helpers."""

from collections.abc import Mapping

from tokenlay.errors import MissingCredentialError


def validate_config(config) -> None:
    """Ensure both credentials are present before any client is built.

    Accepts a TokenlayOptions or a plain mapping. The Tokenlay key is
    checked first, so an empty config reports it.
    """
    if isinstance(config, Mapping):
        tokenlay_key = config.get("tokenlay_key")
        provider_api_key = config.get("provider_api_key")
    else:
        tokenlay_key = getattr(config, "tokenlay_key", None)
        provider_api_key = getattr(config, "provider_api_key", None)

    if not tokenlay_key:
        raise MissingCredentialError(
            "tokenlay_key",
            "tokenlay_key is required. Get your free key at https://tokenlay.com",
        )
    if not provider_api_key:
        raise MissingCredentialError(
            "provider_api_key",
            "provider_api_key is required. This should be your OpenAI API key or other provider key.",
        )


def build_tokenlay_url(base_url: str, endpoint: str) -> str:
    """Join the proxy base URL and an endpoint under the /v1/ prefix."""
    clean_endpoint = endpoint[1:] if endpoint.startswith("/") else endpoint
    return f"{_strip_trailing_slash(base_url)}/v1/{clean_endpoint}"


def build_health_url(base_url: str) -> str:
    """Unversioned status endpoint at the proxy root."""
    return f"{_strip_trailing_slash(base_url)}/health"


def _strip_trailing_slash(base_url: str) -> str:
    # exactly one slash, matching how endpoints lose their leading one
    return base_url[:-1] if base_url.endswith("/") else base_url
