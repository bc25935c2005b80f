"""Minimal Conduit (Phabricator API) client."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from http.client import HTTPException
from typing import Any
from urllib import error, parse, request

from phab_relay.envelope import EnvelopeError, decode_object

logger = logging.getLogger("phab-relay")

RESULT_KEY = "result"
ERROR_KEY = "error_code"


class ConduitClient:
    def __init__(self, token: str, *, timeout: float = 30.0) -> None:
        self.token = token
        self.timeout = timeout

    def post_form(self, url: str, fields: Mapping[str, str]) -> bytes | None:
        """POST ``fields`` plus the API token as a form; None on transport failure."""
        data = parse.urlencode({"api.token": self.token, **fields}).encode("utf-8")
        try:
            req = request.Request(url, data=data, method="POST")
            req.add_header("Content-Type", "application/x-www-form-urlencoded")
            with request.urlopen(req, timeout=self.timeout) as resp:
                return resp.read()
        except error.HTTPError as exc:
            logger.error("conduit request failed url=%s status=%s", url, exc.code)
        except (error.URLError, OSError, HTTPException, ValueError) as exc:
            logger.error("conduit request failed url=%s err=%s", url, exc)
        return None

    def call(self, url: str, fields: Mapping[str, str], description: str) -> dict[str, Any] | None:
        """Return the ``result`` object of a Conduit response, or None."""
        raw = self.post_form(url, fields)
        if raw is None:
            return None
        try:
            envelope = decode_object(raw, description)
        except EnvelopeError as exc:
            logger.error("unreadable conduit response: %s", exc)
            return None
        if envelope.get(ERROR_KEY):
            logger.error(
                "conduit error for %s: %s %s",
                description,
                envelope.get(ERROR_KEY),
                envelope.get("error_info", ""),
            )
        result = envelope.get(RESULT_KEY)
        if not isinstance(result, dict):
            logger.error("%s: no result object in response", description)
            return None
        return result

    def query_phids(self, url: str, phids: list[str]) -> dict[str, Any] | None:
        fields = {f"phids[{idx}]": phid for idx, phid in enumerate(phids)}
        return self.call(url, fields, "PHIDs")

    def search_paste(self, url: str, phid: str) -> dict[str, Any] | None:
        fields = {
            "queryKey": "active",
            "attachments[content]": "1",
            "constraints[phids][0]": phid,
        }
        return self.call(url, fields, "pastes")
