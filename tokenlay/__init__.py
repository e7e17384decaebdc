"""Tokenlay SDK: route OpenAI calls through the Tokenlay proxy.

    from tokenlay import TokenlayOpenAI

    client = TokenlayOpenAI(tokenlay_key="tk_...", provider_api_key="sk-...")
    result = await client.chat.completions.create(
        model="gpt-4o-mini",
        messages=[{"role": "user", "content": "Hello!"}],
        metadata={"userId": "user_123", "tier": "pro"},
    )
"""

from tokenlay.client import TokenlayOpenAI, TokenlayResponse, get_tokenlay_metadata
from tokenlay.clients.models import HealthStatus, TokenlayOptions
from tokenlay.errors import MalformedResponseMetadataError, MissingCredentialError, TokenlayError
from tokenlay.headers.codec import TokenlayMetadata
from tokenlay.version import VERSION

__all__ = [
    "HealthStatus",
    "MalformedResponseMetadataError",
    "MissingCredentialError",
    "TokenlayError",
    "TokenlayMetadata",
    "TokenlayOpenAI",
    "TokenlayOptions",
    "TokenlayResponse",
    "VERSION",
    "get_tokenlay_metadata",
]
