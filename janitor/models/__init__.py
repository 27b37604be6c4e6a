"""Data models for identities, stored candidates and pass results."""

from __future__ import annotations

from janitor.models.candidate import MarkedCandidate, MarkerType
from janitor.models.identity import Identity
from janitor.models.pass_result import PassPhase, PassResult, PassStatus, SweepOutcome, SweepRecord

__all__ = [
    "Identity",
    "MarkedCandidate",
    "MarkerType",
    "PassPhase",
    "PassResult",
    "PassStatus",
    "SweepOutcome",
    "SweepRecord",
]
