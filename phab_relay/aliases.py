from __future__ import annotations

import json
import logging
from typing import Any

from jsonschema import Draft202012Validator

from phab_relay.conduit import ConduitClient
from phab_relay.envelope import EnvelopeError, dig

logger = logging.getLogger("phab-relay")

CONTENT_PATH = ("attachments", "content", "content")

ALIAS_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": {"type": "string"},
}


def parse_alias_document(content: Any) -> dict[str, str]:
    if not isinstance(content, str):
        raise EnvelopeError("paste content is not a string")
    try:
        table = json.loads(content)
    except json.JSONDecodeError as exc:
        raise EnvelopeError(f"invalid paste json: {exc}") from exc
    errors = list(Draft202012Validator(ALIAS_SCHEMA).iter_errors(table))
    if errors:
        raise EnvelopeError(f"invalid alias table: {errors[0].message}")
    return table


def load_aliases(conduit: ConduitClient, url: str, phid: str) -> dict[str, str]:
    """Fetch the alias paste once; any problem yields an empty table."""
    if not phid:
        logger.info("no alias paste configured")
        return {}
    result = conduit.search_paste(url, phid)
    if result is None:
        return {}
    data = result.get("data")
    if not isinstance(data, list) or len(data) != 1:
        count = len(data) if isinstance(data, list) else "none"
        logger.error("incorrect paste count for %s: %s", phid, count)
        return {}
    try:
        table = parse_alias_document(dig(data[0], CONTENT_PATH))
    except EnvelopeError as exc:
        logger.error("unable to read alias paste %s: %s", phid, exc)
        return {}
    logger.debug("lookups resolved: %d aliases", len(table))
    return table
