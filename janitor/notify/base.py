"""Base class for owner notifiers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List

from janitor.errors import NotifyError
from janitor.models.candidate import MarkedCandidate
from janitor.store.candidates import CandidateStore

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Summarizes stored candidates for every known owner.

    Subclasses resolve an owner to a delivery target and send the digest.
    A failure for one owner is logged and never blocks the others.

    Attributes:
        store: Candidate store to read owners and candidates from
    """

    def __init__(self, store: CandidateStore) -> None:
        self.store = store

    @abstractmethod
    def validate(self) -> bool:
        """Check the channel is usable before a run."""
        pass

    @abstractmethod
    def resolve_target(self, owner: str) -> str:
        """Delivery target for ``owner``, falling back to the default owner.

        Raises:
            NotifyError: If neither the owner nor the default owner resolves
        """
        pass

    @abstractmethod
    def send(self, target: str, candidates: List[MarkedCandidate]) -> int:
        """Deliver the digest for ``candidates`` to ``target``.

        Returns:
            Number of messages delivered
        """
        pass

    def collect(self) -> Dict[str, int]:
        """Notify every owner that has stored candidates.

        Returns:
            Messages delivered, keyed by owner

        Raises:
            StoreUnavailable: If the cache cannot be reached
        """
        delivered: Dict[str, int] = {}
        for owner in self.store.list_owners():
            candidates = self.store.list_candidates(owner)
            if not candidates:
                logger.debug(f"No candidates for owner '{owner}', skip")
                continue

            try:
                target = self.resolve_target(owner)
                delivered[owner] = self.send(target, candidates)
            except NotifyError as e:
                logger.error(f"Failed to notify owner '{owner}': {e}")
                continue

            logger.info(f"Notified owner '{owner}' about {len(candidates)} candidates")
        return delivered
