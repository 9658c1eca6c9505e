"""
Wellspring — Profile cache

Bounded, process-local LRU of normalised profiles keyed by user id.  One
instance is built at startup and handed to the ``ProfileRepository``; the
personalization core never sees it.
"""

from __future__ import annotations

from collections import OrderedDict

import structlog

from app.schemas.profile import PersonalizationProfile

logger = structlog.get_logger("wellspring.profile_cache")


class ProfileCache:
    """Least-recently-used cache of ``(revision, profile)`` pairs.

    Stored profiles are deep-copied on the way in and on the way out so a
    caller mutating its copy can never corrupt the cached entry.
    """

    def __init__(self, maxsize: int = 1024) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self.maxsize = maxsize
        self._entries: OrderedDict[str, tuple[int, PersonalizationProfile]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, user_id: str) -> tuple[int, PersonalizationProfile] | None:
        entry = self._entries.get(user_id)
        if entry is None:
            self.misses += 1
            return None
        self._entries.move_to_end(user_id)
        self.hits += 1
        revision, profile = entry
        return revision, profile.model_copy(deep=True)

    def put(self, user_id: str, revision: int, profile: PersonalizationProfile) -> None:
        self._entries[user_id] = (revision, profile.model_copy(deep=True))
        self._entries.move_to_end(user_id)
        while len(self._entries) > self.maxsize:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("profile_cache_evicted", user_id=evicted)

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
