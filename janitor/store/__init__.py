"""Candidate storage on top of a shared cache.

Classes:
    Cache: Cache contract consumed by the store
    RedisCache: Redis binding
    MemoryCache: In-process binding
    CandidateStore: Owners index, candidate sets and lease timers
"""

from __future__ import annotations

from janitor.store.cache import Cache, MemoryCache, RedisCache
from janitor.store.candidates import CandidateStore

__all__ = [
    "Cache",
    "CandidateStore",
    "MemoryCache",
    "RedisCache",
]
