"""
session_cache.py: Profile lookups for the access guard
In-memory cache of `users` rows keyed by auth user id, with TTL-based expiry
and explicit invalidation when a profile changes.
"""

from kakeibo.config import PROFILE_CACHE_TTL
from kakeibo.services.clock import Clock, SystemClock


class ProfileCache:
    """Per-user profile cache with TTL."""

    def __init__(self, ttl_seconds: int = PROFILE_CACHE_TTL, clock: Clock | None = None):
        # user_id → {profile, timestamp}
        self._cache: dict[str, dict] = {}
        self.ttl = ttl_seconds
        self.clock = clock or SystemClock()

    # ------------------------------------------------------------------
    def get(self, user_id: str) -> dict | None:
        """Return the cached profile or None on miss / expiry."""
        entry = self._cache.get(user_id)
        if entry is None:
            return None

        age = self.clock.monotonic() - entry["timestamp"]
        if age > self.ttl:
            del self._cache[user_id]
            return None
        return entry["profile"]

    # ------------------------------------------------------------------
    def set(self, user_id: str, profile: dict):
        """Store a profile. ttl 0 disables caching."""
        if self.ttl <= 0:
            return
        self._cache[user_id] = {
            "profile": profile,
            "timestamp": self.clock.monotonic(),
        }

    # ------------------------------------------------------------------
    def invalidate(self, user_id: str | None = None):
        """Drop one user's entry, or everything when user_id is None."""
        if user_id is None:
            self._cache.clear()
        else:
            self._cache.pop(user_id, None)


# Shared by the auth dependencies and the account routes
profile_cache = ProfileCache()
