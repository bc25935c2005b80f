from __future__ import annotations

import html
import logging
from collections.abc import Mapping
from typing import Any

from phab_relay.activity import ActivityLog
from phab_relay.cache import LookupCache
from phab_relay.conduit import ConduitClient

logger = logging.getLogger("phab-relay")


def render_fragments(record: Mapping[str, Any], aliases: Mapping[str, str]) -> list[str]:
    name = record["name"]
    uri = html.escape(record["uri"], quote=True)
    fragments = [f"<a href='{uri}'>{html.escape(name)}</a>"]
    alias = aliases.get(name)
    if alias is not None:
        fragments.append("aka: " + alias.replace(",", " "))
    return fragments


def _valid_record(record: Any) -> bool:
    return isinstance(record, dict) and all(
        isinstance(record.get(key), str) for key in ("phid", "name", "uri")
    )


class PhidResolver:
    """Turn PHIDs into sorted HTML reference fragments, caching every lookup."""

    def __init__(
        self,
        conduit: ConduitClient,
        query_url: str,
        cache: LookupCache,
        activity: ActivityLog,
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        self.conduit = conduit
        self.query_url = query_url
        self.cache = cache
        self.activity = activity
        self.aliases = dict(aliases or {})

    def resolve(self, phids: list[str]) -> list[str]:
        to_fetch, waiting = self.cache.claim(phids)
        if to_fetch:
            try:
                self._fetch(to_fetch)
            finally:
                self.cache.release(to_fetch)
        for event in waiting:
            event.wait()

        results: list[str] = []
        for phid in phids:
            fragments, found = self.cache.get(phid)
            if found:
                results.extend(fragments)
            self.activity.submit(phid, " ".join(fragments))

        results.sort()
        return results

    def _fetch(self, phids: list[str]) -> None:
        logger.debug("calling to resolve phids: %s", ", ".join(phids))
        result = self.conduit.query_phids(self.query_url, phids)
        if result is None:
            return
        for key, record in result.items():
            if not _valid_record(record):
                logger.error("malformed phid object for %s: %r", key, record)
                continue
            self.cache.put(record["phid"], render_fragments(record, self.aliases))
