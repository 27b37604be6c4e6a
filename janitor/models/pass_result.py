"""Mark and sweep pass result models.

Captures what a single pass did for one (account, kind) pair.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class PassPhase(Enum):
    """Lifecycle phase a pass ran."""

    MARK = "mark"
    SWEEP = "sweep"


class PassStatus(Enum):
    """Pass outcome.

    State transitions:
        running → completed (every item processed)
        running → partial (throttled, cancelled, or some items failed)
        running → failed (pass aborted by a provider error)
    """

    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class SweepOutcome(Enum):
    """Result of handling one due candidate during sweep."""

    DELETED = "deleted"
    ALREADY_GONE = "already-gone"
    DRY_RUN = "dry-run"
    THROTTLED = "throttled"
    FAILED = "failed"


@dataclass
class SweepRecord:
    """Outcome for a single candidate whose lease had expired.

    Attributes:
        owner: Owner the candidate is stored under
        resource_id: Provider identifier
        outcome: What happened
        retracted: Whether the stored record was removed
        error_message: Provider error, if any
    """

    owner: str
    resource_id: str
    outcome: SweepOutcome
    retracted: bool = False
    error_message: Optional[str] = None


@dataclass
class PassResult:
    """Summary of one Mark or Sweep pass for an (account, kind) pair.

    Attributes:
        account: Account or cluster name
        kind: Resource kind
        phase: mark or sweep
        status: Pass outcome
        started_at: When the pass started (UTC)
        completed_at: When the pass finished (UTC)
        listed: Items returned by the provider (mark)
        ignored: Items classified Ignore (mark)
        compliant: Items classified Compliant (mark)
        recorded: New candidate records written (mark)
        retracted: Records removed (mark and sweep)
        skipped: Items skipped after a per-item error (mark)
        throttled: Whether the provider throttled the pass
        cancelled: Whether the pass stopped on the cancel signal
        records: Per-candidate sweep outcomes (sweep)
        errors: Error messages collected during the pass
    """

    account: str
    kind: str
    phase: PassPhase
    status: PassStatus = PassStatus.RUNNING
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    listed: int = 0
    ignored: int = 0
    compliant: int = 0
    non_compliant: int = 0
    recorded: int = 0
    retracted: int = 0
    skipped: int = 0
    throttled: bool = False
    cancelled: bool = False
    records: List[SweepRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def count(self, outcome: SweepOutcome) -> int:
        """Number of sweep records with the given outcome."""
        return sum(1 for r in self.records if r.outcome == outcome)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def finish(self, failed: bool = False) -> "PassResult":
        """Stamp completion time and derive the final status."""
        self.completed_at = datetime.now(timezone.utc)
        if failed:
            self.status = PassStatus.FAILED
        elif self.throttled or self.cancelled or self.errors:
            self.status = PassStatus.PARTIAL
        else:
            self.status = PassStatus.COMPLETED
        return self
