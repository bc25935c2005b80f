from __future__ import annotations

import threading
from collections.abc import Iterable


class LookupCache:
    """Process-lifetime map of PHID -> rendered HTML fragments.

    Entries are write-once. Besides plain get/put, callers can ``claim`` the
    PHIDs they are about to fetch so that a concurrent resolver waits for the
    in-flight lookup instead of issuing a second remote call for the same id.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[str, ...]] = {}
        self._inflight: dict[str, threading.Event] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, phid: object) -> bool:
        with self._lock:
            return phid in self._entries

    def get(self, phid: str) -> tuple[tuple[str, ...], bool]:
        with self._lock:
            fragments = self._entries.get(phid)
        if fragments is None:
            return (), False
        return fragments, True

    def put(self, phid: str, fragments: Iterable[str]) -> None:
        with self._lock:
            self._entries.setdefault(phid, tuple(fragments))

    def claim(self, phids: Iterable[str]) -> tuple[list[str], list[threading.Event]]:
        """Return (phids this caller must fetch, events to wait on for the rest).

        Cached PHIDs are skipped entirely. Duplicates in ``phids`` are
        claimed once.
        """
        to_fetch: list[str] = []
        waiting: list[threading.Event] = []
        with self._lock:
            for phid in phids:
                if phid in self._entries or phid in to_fetch:
                    continue
                event = self._inflight.get(phid)
                if event is not None:
                    if event not in waiting:
                        waiting.append(event)
                    continue
                self._inflight[phid] = threading.Event()
                to_fetch.append(phid)
        return to_fetch, waiting

    def release(self, phids: Iterable[str]) -> None:
        """Finish a claim, whether or not the PHIDs were resolved."""
        with self._lock:
            for phid in phids:
                event = self._inflight.pop(phid, None)
                if event is not None:
                    event.set()
