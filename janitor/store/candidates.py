"""Candidate store: owners index, per-owner candidate sets and lease timers.

Key layout (prefix defaults to ``janitor``):
    <prefix>:owners               set of every owner ever observed
    <prefix>:candidates:<owner>   set of serialized MarkedCandidate records
    <prefix>:timers:<id>          expiring lease key, one per resource id
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Union

from janitor.classify.duration import MIN_GRACE_PERIOD, parse_grace_period
from janitor.errors import InvalidDuration, MalformedCachedRecord, NoCandidates
from janitor.models.candidate import MarkedCandidate
from janitor.store.cache import Cache

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = "24h"
DEFAULT_PREFIX = "janitor"


class CandidateStore:
    """Records non-compliant candidates and their grace-period leases.

    A store is a thin view over a shared cache. Several stores with
    different grace periods may wrap the same cache; the records themselves
    carry account and kind, so stores never step on each other.

    Attributes:
        cache: Cache binding
        grace_period: Grace period string written as the lease value
        grace_delta: Parsed grace period, None when leases never expire
        prefix: Key prefix
    """

    def __init__(
        self,
        cache: Cache,
        grace_period: Union[str, timedelta] = DEFAULT_GRACE_PERIOD,
        prefix: str = DEFAULT_PREFIX,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize candidate store.

        Args:
            cache: Cache binding
            grace_period: Duration string (e.g. "24h"), "0" for leases that never expire, or timedelta
            prefix: Key prefix
            clock: Callable returning current UTC time (default: datetime.now)

        Raises:
            InvalidDuration: If grace_period is malformed, negative or under one second
        """
        self.cache = cache
        self.grace_delta: Optional[timedelta]
        if isinstance(grace_period, timedelta):
            if grace_period < MIN_GRACE_PERIOD:
                raise InvalidDuration(f"grace period must be at least 1s: {grace_period}")
            self.grace_delta = grace_period
            self.grace_period = f"{int(grace_period.total_seconds())}s"
        else:
            self.grace_delta = parse_grace_period(grace_period)
            self.grace_period = grace_period
        self.prefix = prefix
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def owners_key(self) -> str:
        return f"{self.prefix}:owners"

    def candidates_key(self, owner: str) -> str:
        return f"{self.prefix}:candidates:{owner}"

    def lease_key(self, resource_id: str) -> str:
        return f"{self.prefix}:timers:{resource_id}"

    def record_candidate(self, owner: str, candidate: MarkedCandidate) -> bool:
        """Record a non-compliant candidate and start its lease.

        Re-recording a byte-identical candidate is a no-op. An existing
        lease is never refreshed, so the grace period runs from first
        detection.

        Args:
            owner: Owner the candidate is filed under
            candidate: Candidate to record

        Returns:
            True if a new record was written, False if it was already present
        """
        record = candidate.serialize()
        key = self.candidates_key(owner)

        if self.cache.is_member(key, record):
            logger.debug(f"Candidate {candidate.id} already recorded for owner '{owner}', skip")
            return False

        self.cache.add(self.owners_key, owner)
        self.cache.add(key, record)

        lease = self.lease_key(candidate.id)
        if not self.cache.exists(lease):
            if self.grace_delta is None:
                self.cache.create_with_expiry(lease, self.grace_period, None)
                logger.debug(f"Lease for {candidate.id} never expires")
            else:
                expiry = self.clock() + self.grace_delta
                self.cache.create_with_expiry(lease, self.grace_period, expiry)
                logger.debug(f"Lease for {candidate.id} expires at {expiry.isoformat()}")

        return True

    def clear_candidate(self, owner: str, ids: Iterable[str]) -> int:
        """Remove every record of ``owner`` whose id is in ``ids``.

        Lease timers are left alone.

        Args:
            owner: Owner whose records to scan
            ids: Resource ids to retract

        Returns:
            Number of records removed

        Raises:
            NoCandidates: If the owner has no records at all
        """
        key = self.candidates_key(owner)
        records = self.cache.read_set(key)
        if not records:
            raise NoCandidates(f"no candidates to remove for owner '{owner}'")

        wanted = set(ids)
        removed = 0
        for record in records:
            try:
                candidate = MarkedCandidate.deserialize(record)
            except MalformedCachedRecord:
                continue
            if candidate.id in wanted:
                self.cache.remove(key, record)
                removed += 1
                logger.debug(f"Retracted candidate {candidate.id} for owner '{owner}'")

        return removed

    def list_candidates(self, owner: str) -> List[MarkedCandidate]:
        """Return every decodable candidate recorded for ``owner``."""
        candidates = []
        for record in self.cache.read_set(self.candidates_key(owner)):
            try:
                candidates.append(MarkedCandidate.deserialize(record))
            except MalformedCachedRecord as e:
                logger.debug(f"Skipping malformed record for owner '{owner}': {e}")
        return candidates

    def lease_alive(self, resource_id: str) -> bool:
        return self.cache.exists(self.lease_key(resource_id))

    def list_owners(self) -> List[str]:
        return sorted(self.cache.read_set(self.owners_key))
