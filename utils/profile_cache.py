"""Lightweight creator-profile caching helpers for per-run reuse."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from personas.loader import JsonProfileStore


@lru_cache(maxsize=64)
def get_promotion_url(creator_id: str) -> Optional[str]:
    """Return the cached promotion link for the given creator."""

    # Profiles are static during a single run, so re-use the resolved link.
    return JsonProfileStore().promotion_url(creator_id)


class CachedProfileStore:
    """Default creator profile store backed by the cached JSON lookups."""

    def promotion_url(self, creator_id: str) -> Optional[str]:
        return get_promotion_url(creator_id)
