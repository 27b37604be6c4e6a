"""Lifecycle controller.

Drives the Mark and Sweep passes for every resource kind of one account or
cluster: list through an adapter, classify, commit decisions to the
candidate store, and later delete candidates whose lease has run out.
"""

from __future__ import annotations

import functools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from janitor.adapters.base import ResourceAdapter
from janitor.classify.classifier import Disposition, FilterChain
from janitor.classify.filters import PassContext
from janitor.errors import NoCandidates, ProviderError, ProviderNotFound, ProviderThrottled, StoreUnavailable
from janitor.models.candidate import MarkedCandidate
from janitor.models.identity import OWNER_TAG, PURPOSE_TAG, TTL_TAG
from janitor.models.pass_result import PassPhase, PassResult, SweepOutcome, SweepRecord
from janitor.store.candidates import CandidateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KindHandler:
    """Mark and sweep entry points for one resource kind."""

    mark: Callable[[], PassResult]
    sweep: Callable[[], PassResult]


class LifecycleController:
    """Mark/Sweep orchestrator for one account or cluster.

    Mark and Sweep of the same controller never overlap: both take the
    controller lock for the whole pass. Controllers for different accounts
    share nothing but the cache and may run in parallel.

    Attributes:
        account: Account or cluster name recorded on candidates
        adapters: Adapters keyed by kind
        store: Candidate store
        delete_enabled: When False, sweep only reports what it would delete
        owner_tag: Tag holding the owner
        cancel_event: Checked between pages and owners
        handlers: Kind registry, in adapter order
    """

    def __init__(
        self,
        account: str,
        adapters: Iterable[ResourceAdapter],
        store: CandidateStore,
        delete_enabled: bool = False,
        owner_tag: str = OWNER_TAG,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.account = account
        self.store = store
        self.delete_enabled = delete_enabled
        self.owner_tag = owner_tag
        self.cancel_event = cancel_event or threading.Event()
        self._lock = threading.Lock()

        self.adapters: Dict[str, ResourceAdapter] = {}
        for adapter in adapters:
            if adapter.kind in self.adapters:
                raise ValueError(f"Duplicate adapter for kind '{adapter.kind}' in {account}")
            self.adapters[adapter.kind] = adapter

        self.handlers: Dict[str, KindHandler] = {
            kind: KindHandler(
                mark=functools.partial(self.mark_kind, kind),
                sweep=functools.partial(self.sweep_kind, kind),
            )
            for kind in self.adapters
        }

    @property
    def kinds(self) -> List[str]:
        return list(self.handlers)

    def mark(self, kinds: Optional[Iterable[str]] = None) -> List[PassResult]:
        """Run a Mark pass for every registered kind (or the given subset).

        Raises:
            StoreUnavailable: If the cache cannot be reached
        """
        return [handler.mark() for kind, handler in self._selected(kinds)]

    def sweep(self, kinds: Optional[Iterable[str]] = None) -> List[PassResult]:
        """Run a Sweep pass for every registered kind (or the given subset).

        Raises:
            StoreUnavailable: If the cache cannot be reached
        """
        return [handler.sweep() for kind, handler in self._selected(kinds)]

    def _selected(self, kinds: Optional[Iterable[str]]):
        wanted = set(kinds) if kinds is not None else None
        for kind, handler in self.handlers.items():
            if wanted is None or kind in wanted:
                yield kind, handler

    def mark_kind(self, kind: str) -> PassResult:
        """Classify every resource of ``kind`` and commit the decisions.

        Pagination is driven only by tokens the provider returns. A
        throttled listing ends the pass early; a failing item is skipped.
        Effects already committed stay committed.

        Args:
            kind: Registered resource kind

        Returns:
            PassResult for the pass

        Raises:
            KeyError: If no adapter is registered for ``kind``
            StoreUnavailable: If the cache cannot be reached
        """
        adapter = self.adapters[kind]
        result = PassResult(account=self.account, kind=kind, phase=PassPhase.MARK)

        with self._lock:
            logger.info(f"Marking {kind} in {self.account}")
            try:
                context = adapter.prepare_context()
                chain = adapter.filter_chain()
                self._mark_pages(adapter, chain, context, result)
            except ProviderError as e:
                logger.error(f"Mark of {kind} in {self.account} aborted: {e}")
                result.errors.append(str(e))
                return result.finish(failed=True)

        logger.info(
            f"Marked {kind} in {self.account}: {result.listed} listed, {result.non_compliant} non-compliant, "
            f"{result.recorded} new, {result.retracted} retracted"
        )
        return result.finish()

    def _mark_pages(
        self, adapter: ResourceAdapter, chain: FilterChain, context: PassContext, result: PassResult
    ) -> None:
        token: Optional[str] = None
        while True:
            if self.cancel_event.is_set():
                logger.warning(f"Mark of {adapter.kind} in {self.account} cancelled")
                result.cancelled = True
                return

            try:
                items, token = adapter.list(token)
            except ProviderThrottled as e:
                logger.warning(f"Throttled listing {adapter.kind} in {self.account}, ending pass: {e}")
                result.throttled = True
                return

            result.listed += len(items)
            for item in items:
                try:
                    self._mark_item(adapter, chain, context, item, result)
                except ProviderThrottled as e:
                    logger.warning(f"Throttled on {adapter.kind} in {self.account}, ending pass: {e}")
                    result.throttled = True
                    return
                except ProviderError as e:
                    logger.error(f"Skipping {adapter.kind} item in {self.account}: {e}")
                    result.skipped += 1
                    result.errors.append(str(e))
                except StoreUnavailable:
                    raise
                except Exception as e:
                    logger.error(f"Unexpected error on {adapter.kind} item in {self.account}, skipping: {e}")
                    result.skipped += 1
                    result.errors.append(f"{type(e).__name__}: {e}")

            if not token:
                return

    def _mark_item(
        self, adapter: ResourceAdapter, chain: FilterChain, context: PassContext, item: Any, result: PassResult
    ) -> None:
        identity = adapter.extract_identity(item)
        owner = identity.tag(self.owner_tag)
        disposition = chain.classify(identity, item, context)

        if disposition is Disposition.NON_COMPLIANT:
            result.non_compliant += 1
            candidate = MarkedCandidate(
                marker_type=adapter.marker_type,
                candidate_type=adapter.kind,
                id=identity.id,
                owner=owner,
                ttl=identity.tag(TTL_TAG),
                purpose=identity.tag(PURPOSE_TAG),
                account=self.account,
                tags=adapter.candidate_tags(identity),
            )
            if self.store.record_candidate(owner, candidate):
                result.recorded += 1
                logger.info(f"Recorded {adapter.kind} {identity.id} for owner '{owner}' in {self.account}")
            return

        if disposition is Disposition.IGNORE:
            result.ignored += 1
        else:
            result.compliant += 1
        result.retracted += self._retract(owner, identity.id)

    def sweep_kind(self, kind: str) -> PassResult:
        """Delete every candidate of ``kind`` whose lease has expired.

        Only candidates recorded for this controller's account are
        considered. With deletion disabled every due candidate is reported
        as a dry run and left in place.

        Args:
            kind: Registered resource kind

        Returns:
            PassResult with one SweepRecord per due candidate

        Raises:
            KeyError: If no adapter is registered for ``kind``
            StoreUnavailable: If the cache cannot be reached
        """
        adapter = self.adapters[kind]
        result = PassResult(account=self.account, kind=kind, phase=PassPhase.SWEEP)

        # one delete per id per pass, however many records it has
        handled: Dict[str, SweepOutcome] = {}

        with self._lock:
            logger.info(f"Sweeping {kind} in {self.account}")
            for owner in self.store.list_owners():
                if self.cancel_event.is_set():
                    logger.warning(f"Sweep of {kind} in {self.account} cancelled")
                    result.cancelled = True
                    break

                for candidate in self.store.list_candidates(owner):
                    if candidate.candidate_type != kind or candidate.account != self.account:
                        continue
                    if candidate.id in handled:
                        if handled[candidate.id] in (SweepOutcome.DELETED, SweepOutcome.ALREADY_GONE):
                            self._retract(owner, candidate.id)
                        continue
                    if self.store.lease_alive(candidate.id):
                        continue

                    record = self._sweep_candidate(adapter, owner, candidate)
                    handled[candidate.id] = record.outcome
                    result.records.append(record)
                    if record.retracted:
                        result.retracted += 1
                    if record.outcome is SweepOutcome.THROTTLED:
                        result.throttled = True
                    elif record.outcome is SweepOutcome.FAILED:
                        result.errors.append(record.error_message or "")

        logger.info(
            f"Swept {kind} in {self.account}: {result.count(SweepOutcome.DELETED)} deleted, "
            f"{result.count(SweepOutcome.ALREADY_GONE)} already gone, {result.count(SweepOutcome.DRY_RUN)} dry run"
        )
        return result.finish()

    def _sweep_candidate(self, adapter: ResourceAdapter, owner: str, candidate: MarkedCandidate) -> SweepRecord:
        if not self.delete_enabled:
            logger.warning(f"Would have deleted {candidate.candidate_type} {candidate.id} in {self.account}")
            return SweepRecord(owner=owner, resource_id=candidate.id, outcome=SweepOutcome.DRY_RUN)

        try:
            adapter.delete(candidate.id)
        except ProviderThrottled as e:
            logger.warning(f"Throttled deleting {candidate.id} in {self.account}, keeping record: {e}")
            return SweepRecord(owner, candidate.id, SweepOutcome.THROTTLED, error_message=str(e))
        except ProviderNotFound:
            logger.info(f"{candidate.candidate_type} {candidate.id} already gone in {self.account}")
            retracted = self._retract(owner, candidate.id) > 0
            return SweepRecord(owner, candidate.id, SweepOutcome.ALREADY_GONE, retracted=retracted)
        except ProviderError as e:
            logger.error(f"Failed to delete {candidate.candidate_type} {candidate.id} in {self.account}: {e}")
            return SweepRecord(owner, candidate.id, SweepOutcome.FAILED, error_message=str(e))

        retracted = self._retract(owner, candidate.id) > 0
        return SweepRecord(owner, candidate.id, SweepOutcome.DELETED, retracted=retracted)

    def _retract(self, owner: str, resource_id: str) -> int:
        try:
            return self.store.clear_candidate(owner, [resource_id])
        except NoCandidates:
            return 0
