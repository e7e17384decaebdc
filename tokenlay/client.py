"""TokenlayOpenAI — OpenAI client routed through the Tokenlay proxy.

The wrapped AsyncOpenAI talks to the Tokenlay proxy instead of the provider.
The real provider key and base URL travel as x-tokenlay-* headers so the
proxy can forward the call, which means the proxy is trusted with the
downstream credential.
"""

import dataclasses
from collections.abc import Mapping
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from tokenlay.clients.models import HealthStatus, TokenlayOptions
from tokenlay.config.settings import (
    DEFAULT_PROVIDER_API_BASE,
    DEFAULT_TOKENLAY_BASE_URL,
    get_settings,
)
from tokenlay.config.validation import build_health_url, build_tokenlay_url, validate_config
from tokenlay.errors import MalformedResponseMetadataError, MissingCredentialError
from tokenlay.headers.codec import (
    PROVIDER_BASE_HEADER,
    PROVIDER_KEY_HEADER,
    TokenlayMetadata,
    merge_headers,
    metadata_to_headers,
    parse_tokenlay_headers,
)
from tokenlay.logging.audit import RequestTimer, get_audit_logger, request_id_var

REQUEST_ID_HEADER = "x-request-id"


@dataclasses.dataclass
class TokenlayResponse:
    """Provider response plus the proxy's metadata for the call.

    Attribute access falls through to the wrapped response, so code written
    against the plain OpenAI client (``result.choices[0]``) keeps working.
    """

    response: Any
    tokenlay_metadata: TokenlayMetadata | None = None

    def __getattr__(self, name: str):
        if name in ("response", "tokenlay_metadata"):
            raise AttributeError(name)
        return getattr(self.response, name)

    def __aiter__(self):
        # Streaming responses (stream=True) are AsyncStream objects
        return self.response.__aiter__()


class _Completions:
    def __init__(self, client: "TokenlayOpenAI"):
        self._client = client

    async def create(self, *, metadata: Mapping[str, str | None] | None = None, **params) -> TokenlayResponse:
        """Create a chat completion through the proxy.

        ``metadata`` is sent as x-tokenlay-* headers on this call only; every
        other keyword goes to ``AsyncOpenAI.chat.completions.create``
        unchanged. Errors from the OpenAI client propagate as-is.
        """
        return await self._client._create_chat_completion(metadata, params)


class _Chat:
    def __init__(self, client: "TokenlayOpenAI"):
        self.completions = _Completions(client)


class TokenlayOpenAI:
    """Drop-in replacement for AsyncOpenAI that routes through Tokenlay."""

    def __init__(self, options: TokenlayOptions | None = None, **kwargs):
        """Accepts a TokenlayOptions, keyword fields, or both (keywords win)."""
        if options is None:
            validate_config(kwargs)
            options = TokenlayOptions(**kwargs)
        else:
            options = dataclasses.replace(options, **kwargs)
            validate_config(options)

        self._options = dataclasses.replace(
            options,
            provider_api_base=options.provider_api_base or DEFAULT_PROVIDER_API_BASE,
            tokenlay_base_url=options.tokenlay_base_url or DEFAULT_TOKENLAY_BASE_URL,
            timeout=options.timeout if options.timeout is not None else 60000,
            max_retries=options.max_retries if options.max_retries is not None else 2,
            metadata=dict(options.metadata) if options.metadata else None,
            extra_headers=dict(options.extra_headers) if options.extra_headers else None,
        )

        self._openai = AsyncOpenAI(
            api_key=self._options.tokenlay_key,
            base_url=build_tokenlay_url(self._options.tokenlay_base_url, ""),
            timeout=self._options.timeout / 1000,
            max_retries=self._options.max_retries,
            default_headers=self._build_default_headers(),
            http_client=self._options.http_client,
        )
        self.chat = _Chat(self)

    @classmethod
    def from_env(cls, **overrides) -> "TokenlayOpenAI":
        """Build a client from TOKENLAY_KEY / OPENAI_API_KEY and friends."""
        return cls(TokenlayOptions.from_settings(get_settings(), **overrides))

    @property
    def options(self) -> TokenlayOptions:
        return self._options

    @property
    def openai(self) -> AsyncOpenAI:
        """The underlying AsyncOpenAI client, for advanced usage."""
        return self._openai

    def _build_default_headers(self) -> dict[str, str]:
        control = {
            PROVIDER_KEY_HEADER: self._options.provider_api_key,
            PROVIDER_BASE_HEADER: self._options.provider_api_base,
        }
        return merge_headers(
            control,
            metadata_to_headers(self._options.metadata or {}),
            self._options.extra_headers,
        )

    def _reconfigure(self) -> None:
        """Swap in a copy of the OpenAI client carrying fresh default headers.

        The copy shares the connection pool. Requests already in flight keep
        the client (and headers) they started with.
        """
        self._openai = self._openai.copy(set_default_headers=self._build_default_headers())

    async def _create_chat_completion(
        self, metadata: Mapping[str, str | None] | None, params: dict
    ) -> TokenlayResponse:
        logger = get_audit_logger()
        request_headers = metadata_to_headers(metadata) if metadata else {}
        extra_headers = merge_headers(params.pop("extra_headers", None), request_headers)
        openai_client = self._openai

        try:
            with RequestTimer() as timer:
                raw = await openai_client.chat.completions.with_raw_response.create(
                    **params, extra_headers=extra_headers
                )
        except openai.APIError as e:
            logger.warning(
                "Chat completion failed",
                extra={"audit_data": {
                    "event": "chat_completion_error",
                    "model": params.get("model"),
                    "error_type": type(e).__name__,
                    "latency_ms": timer.elapsed_ms,
                }},
            )
            raise

        request_id = raw.headers.get(REQUEST_ID_HEADER)
        try:
            tokenlay_metadata = parse_tokenlay_headers(raw.headers) if request_id else None
        except MalformedResponseMetadataError:
            # stream=True leaves the body unread; release the connection
            await raw.http_response.aclose()
            raise
        response = raw.parse()

        token = request_id_var.set(request_id or "")
        try:
            logger.info(
                "Chat completion",
                extra={"audit_data": {
                    "event": "chat_completion",
                    "model": params.get("model"),
                    "stream": bool(params.get("stream")),
                    "request_metadata": bool(request_headers),
                    "latency_ms": timer.elapsed_ms,
                    "rule_action": tokenlay_metadata.rule_action if tokenlay_metadata else None,
                    "cost": tokenlay_metadata.cost if tokenlay_metadata else None,
                }},
            )
        finally:
            request_id_var.reset(token)

        return TokenlayResponse(response=response, tokenlay_metadata=tokenlay_metadata)

    def update_metadata(self, metadata: Mapping[str, str | None]) -> None:
        """Merge new global metadata and apply it to subsequent requests."""
        filtered = {key: value for key, value in metadata.items() if value is not None}
        self._options.metadata = {**(self._options.metadata or {}), **filtered}
        self._reconfigure()

    def update_provider_key(self, provider_api_key: str) -> None:
        """Rotate the provider key forwarded to the proxy."""
        if not provider_api_key:
            raise MissingCredentialError("provider_api_key", "provider_api_key must not be empty")
        self._options.provider_api_key = provider_api_key
        self._reconfigure()

    async def health_check(self) -> HealthStatus:
        """Check the proxy's /health endpoint. Never raises."""
        url = build_health_url(self._options.tokenlay_base_url)
        headers = {"Authorization": f"Bearer {self._options.tokenlay_key}"}

        try:
            response = await self._get(url, headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            message = str(e) or type(e).__name__
            get_audit_logger().warning(
                "Health check failed",
                extra={"audit_data": {"event": "health_check", "error": message}},
            )
            return HealthStatus(status="error", message=message)

        if response.is_success:
            return HealthStatus(status="ok")

        message = f"HTTP {response.status_code}: {response.reason_phrase}"
        get_audit_logger().warning(
            "Health check failed",
            extra={"audit_data": {"event": "health_check", "error": message}},
        )
        return HealthStatus(status="error", message=message)

    async def _get(self, url: str, headers: dict) -> httpx.Response:
        if self._options.http_client is not None:
            return await self._options.http_client.get(url, headers=headers)
        async with httpx.AsyncClient() as client:
            return await client.get(url, headers=headers)

    async def close(self) -> None:
        await self._openai.close()

    async def __aenter__(self) -> "TokenlayOpenAI":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()


def get_tokenlay_metadata(response: Any) -> TokenlayMetadata | None:
    """Return the proxy metadata attached to a create() result, if any."""
    return getattr(response, "tokenlay_metadata", None)
