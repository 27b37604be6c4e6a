"""Cache contract consumed by the candidate store, plus its bindings.

The store only needs set operations and expiring keys. ``RedisCache`` binds
the contract to a Redis server; ``MemoryCache`` keeps everything in-process
for tests and local dry runs.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol, Set, Tuple

import redis

from janitor.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class Cache(Protocol):
    """Operations the candidate store requires from a cache."""

    def add(self, key: str, value: str) -> None:
        """Add ``value`` to the set at ``key``."""
        ...

    def read_set(self, key: str) -> List[str]:
        """Return all members of the set at ``key`` (empty if absent)."""
        ...

    def is_member(self, key: str, value: str) -> bool:
        ...

    def remove(self, key: str, value: str) -> None:
        """Remove ``value`` from the set at ``key``."""
        ...

    def create_with_expiry(self, key: str, value: str, expiry: Optional[datetime]) -> bool:
        """Create ``key`` expiring at ``expiry`` unless it exists.

        A ``None`` expiry creates a key that never expires.

        Returns:
            True if the key was created, False if it already existed
        """
        ...

    def exists(self, key: str) -> bool:
        ...


class RedisCache:
    """Redis binding of the cache contract.

    Connection and timeout failures surface as ``StoreUnavailable``.

    Attributes:
        client: redis-py client
    """

    SCAN_COUNT = 10

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        client: Optional[redis.Redis] = None,
    ) -> None:
        """Initialize Redis cache.

        Args:
            host: Redis host
            port: Redis port
            db: Database number
            password: Password (optional)
            client: Pre-built client, overrides the connection arguments
        """
        self.client = client or redis.Redis(host=host, port=port, db=db, password=password, decode_responses=True)

    def ping(self) -> None:
        """Verify the server is reachable.

        Raises:
            StoreUnavailable: If the server cannot be reached
        """
        logger.debug("Connecting to redis...")
        self._call(self.client.ping)

    def add(self, key: str, value: str) -> None:
        logger.debug(f"redis sadd {key}: {value}")
        self._call(self.client.sadd, key, value)

    def read_set(self, key: str) -> List[str]:
        logger.debug(f"redis sscan {key}")
        return self._call(lambda: [_text(m) for m in self.client.sscan_iter(key, count=self.SCAN_COUNT)])

    def is_member(self, key: str, value: str) -> bool:
        return bool(self._call(self.client.sismember, key, value))

    def remove(self, key: str, value: str) -> None:
        logger.debug(f"redis srem {key}: {value}")
        self._call(self.client.srem, key, value)

    def create_with_expiry(self, key: str, value: str, expiry: Optional[datetime]) -> bool:
        # NX: an existing lease is never overwritten
        if expiry is None:
            logger.debug(f"redis set nx {key}={value} without expiry")
            created = self._call(self.client.set, key, value, nx=True)
        else:
            logger.debug(f"redis set nx {key}={value} expiring at {expiry.isoformat()}")
            created = self._call(self.client.set, key, value, nx=True, exat=int(expiry.timestamp()))
        return bool(created)

    def exists(self, key: str) -> bool:
        return self._call(self.client.exists, key) == 1

    def _call(self, fn: Callable, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError) as e:
            raise StoreUnavailable(f"Redis unavailable: {e}") from e


def _text(value) -> str:
    return value.decode() if isinstance(value, bytes) else value


class MemoryCache:
    """In-process binding of the cache contract.

    Expiring keys vanish once the clock passes their expiry.

    Attributes:
        clock: Callable returning the current UTC time
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._sets: Dict[str, Set[str]] = {}
        self._keys: Dict[str, Tuple[str, Optional[datetime]]] = {}
        self._lock = threading.Lock()

    def add(self, key: str, value: str) -> None:
        with self._lock:
            self._sets.setdefault(key, set()).add(value)

    def read_set(self, key: str) -> List[str]:
        with self._lock:
            return sorted(self._sets.get(key, set()))

    def is_member(self, key: str, value: str) -> bool:
        with self._lock:
            return value in self._sets.get(key, set())

    def remove(self, key: str, value: str) -> None:
        with self._lock:
            members = self._sets.get(key)
            if members is not None:
                members.discard(value)
                if not members:
                    del self._sets[key]

    def create_with_expiry(self, key: str, value: str, expiry: Optional[datetime]) -> bool:
        with self._lock:
            if self._alive(key):
                return False
            self._keys[key] = (value, expiry)
            return True

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._alive(key) or key in self._sets

    def expiry(self, key: str) -> Optional[datetime]:
        """Return the expiry of a live key, None if absent or never expiring."""
        with self._lock:
            return self._keys[key][1] if self._alive(key) else None

    def _alive(self, key: str) -> bool:
        entry = self._keys.get(key)
        if entry is None:
            return False
        if entry[1] is not None and entry[1] <= self.clock():
            del self._keys[key]
            return False
        return True
