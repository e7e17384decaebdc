"""Exceptions raised by the Tokenlay SDK.

Errors coming out of the wrapped OpenAI client are never translated; they
reach the caller as the ``openai`` exception types.
"""


class TokenlayError(Exception):
    """Base class for errors raised by this package."""


class MissingCredentialError(TokenlayError, ValueError):
    """A required credential was missing or empty at construction time."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class MalformedResponseMetadataError(TokenlayError, ValueError):
    """A Tokenlay response header could not be decoded."""

    def __init__(self, header: str, value: str, reason: str):
        super().__init__(f"Malformed {header} header {value!r}: {reason}")
        self.header = header
        self.value = value
