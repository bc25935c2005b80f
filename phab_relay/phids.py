from __future__ import annotations

from collections.abc import Iterable

PHID_MARKER = "PHID-"


def is_resolvable(token: str, allowed_types: Iterable[str]) -> bool:
    """True when ``token`` looks like ``PHID-<TYPE>-...`` for an allowed TYPE."""
    if not token.startswith(PHID_MARKER):
        return False
    return any(token.startswith(f"{PHID_MARKER}{kind}-") for kind in allowed_types)
