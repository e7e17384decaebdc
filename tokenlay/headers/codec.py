"""Translation between metadata and x-tokenlay-* HTTP headers.

Outbound: arbitrary key/value metadata becomes ``x-tokenlay-<key>`` request
headers, with the key passed through untouched. Inbound: the proxy reports
its policy decision and usage accounting in a fixed set of response headers,
which are decoded into a TokenlayMetadata record.
"""

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from tokenlay.errors import MalformedResponseMetadataError

HEADER_PREFIX = "x-tokenlay-"

PROVIDER_KEY_HEADER = "x-tokenlay-provider-key"
PROVIDER_BASE_HEADER = "x-tokenlay-provider-base"

RULE_ID_HEADER = "x-tokenlay-rule-id"
RULE_ACTION_HEADER = "x-tokenlay-rule-action"
LIMIT_EXCEEDED_HEADER = "x-tokenlay-limit-exceeded"
COST_HEADER = "x-tokenlay-cost"
TOKENS_USED_HEADER = "x-tokenlay-tokens-used"
INPUT_TOKENS_HEADER = "x-tokenlay-input-tokens"
OUTPUT_TOKENS_HEADER = "x-tokenlay-output-tokens"
DURATION_HEADER = "x-tokenlay-duration"
WARNINGS_HEADER = "x-tokenlay-warnings"

RuleAction = Literal["allow", "block", "warn", "queue"]
RULE_ACTIONS: tuple[str, ...] = ("allow", "block", "warn", "queue")


@dataclass
class TokenlayMetadata:
    """Proxy-side view of a single request."""

    rule_action: RuleAction = "allow"
    limit_exceeded: bool = False
    cost: float = 0.0  # USD
    tokens_used: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    duration: int = 0  # milliseconds
    rule_id: str | None = None
    warnings: list[str] | None = None


def metadata_to_headers(metadata: Mapping[str, str | None]) -> dict[str, str]:
    """Prefix each metadata key; entries whose value is None are dropped."""
    return {
        f"{HEADER_PREFIX}{key}": value
        for key, value in metadata.items()
        if value is not None
    }


def merge_headers(*header_groups: Mapping[str, str] | None) -> dict[str, str]:
    """Merge header dicts left to right; later groups win on collision."""
    merged: dict[str, str] = {}
    for headers in header_groups:
        if headers:
            merged.update(headers)
    return merged


def parse_tokenlay_headers(headers: Mapping[str, str]) -> TokenlayMetadata:
    """Decode proxy response headers into TokenlayMetadata.

    Missing or empty headers fall back to the record defaults. Anything
    present but undecodable raises MalformedResponseMetadataError: numbers
    that are non-numeric, negative or not finite, an unknown rule action,
    or warnings that are not a JSON list of strings.
    """
    lowered = {key.lower(): value for key, value in headers.items()}

    rule_action = lowered.get(RULE_ACTION_HEADER) or "allow"
    if rule_action not in RULE_ACTIONS:
        raise MalformedResponseMetadataError(
            RULE_ACTION_HEADER, rule_action, f"expected one of {', '.join(RULE_ACTIONS)}"
        )

    return TokenlayMetadata(
        rule_id=lowered.get(RULE_ID_HEADER) or None,
        rule_action=rule_action,
        limit_exceeded=lowered.get(LIMIT_EXCEEDED_HEADER) == "true",
        cost=_parse_number(lowered, COST_HEADER, float),
        tokens_used=_parse_number(lowered, TOKENS_USED_HEADER, int),
        input_tokens=_parse_number(lowered, INPUT_TOKENS_HEADER, int),
        output_tokens=_parse_number(lowered, OUTPUT_TOKENS_HEADER, int),
        duration=_parse_number(lowered, DURATION_HEADER, int),
        warnings=_parse_warnings(lowered.get(WARNINGS_HEADER)),
    )


def _parse_number(headers: dict[str, str], name: str, kind):
    raw = headers.get(name)
    if not raw:
        return kind(0)
    try:
        value = kind(raw.strip())
    except ValueError:
        raise MalformedResponseMetadataError(name, raw, f"not a valid {kind.__name__}")
    # cost and counts are finite and never negative
    if not math.isfinite(value) or value < 0:
        raise MalformedResponseMetadataError(name, raw, "expected a finite non-negative number")
    return value


def _parse_warnings(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    try:
        warnings = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedResponseMetadataError(WARNINGS_HEADER, raw, str(e)) from e
    if not isinstance(warnings, list) or not all(isinstance(w, str) for w in warnings):
        raise MalformedResponseMetadataError(WARNINGS_HEADER, raw, "expected a JSON array of strings")
    return warnings
