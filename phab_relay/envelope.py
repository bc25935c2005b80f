"""Helpers for unwrapping the JSON envelopes returned by Conduit."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any


class EnvelopeError(ValueError):
    """Raised when a response body cannot be read as the expected JSON shape."""


class MissingPathSegment(EnvelopeError):
    def __init__(self, segment: str, path: Sequence[str]) -> None:
        self.segment = segment
        self.path = tuple(path)
        super().__init__(f"missing '{segment}' in {'.'.join(self.path)}")


def decode_object(raw: bytes | str | None, description: str) -> dict[str, Any]:
    if raw is None:
        raise EnvelopeError(f"{description}: empty response")
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise EnvelopeError(f"{description}: {exc}") from exc
    if not isinstance(value, dict):
        raise EnvelopeError(f"{description}: expected a JSON object, got {type(value).__name__}")
    return value


def dig(value: Any, path: Sequence[str]) -> Any:
    """Walk ``path`` through nested JSON objects.

    Iterates over the path once, so depth is bounded by ``len(path)``.
    Raises MissingPathSegment at the first key that is absent or that
    points into something that is not an object.
    """
    current = value
    for segment in path:
        if not isinstance(current, dict) or segment not in current:
            raise MissingPathSegment(segment, path)
        current = current[segment]
    return current
