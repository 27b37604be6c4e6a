"""Digest rendering: candidates to chat attachments, chunked per message."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Sequence, TypeVar

from janitor.models.candidate import MarkedCandidate

# Slack accepts 100 attachments per message but more than 20 is unreadable.
MAX_ITEMS_PER_MESSAGE = 20
DIGEST_TEXT = "Resources with expiring ttl"

T = TypeVar("T")


def chunk(items: Sequence[T], size: int = MAX_ITEMS_PER_MESSAGE) -> Iterator[List[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def attachment_fields(candidate: MarkedCandidate) -> List[Dict[str, Any]]:
    """Every tag, then purpose, owner, type and account."""
    fields = [{"title": key, "value": candidate.tags[key], "short": True} for key in sorted(candidate.tags)]
    fields.extend(
        [
            {"title": "purpose", "value": candidate.purpose, "short": True},
            {"title": "owner", "value": candidate.owner, "short": True},
            {"title": "type", "value": candidate.candidate_type, "short": True},
            {"title": "account", "value": candidate.account, "short": True},
        ]
    )
    return fields


def render_attachment(candidate: MarkedCandidate) -> Dict[str, Any]:
    return {
        "color": candidate.marker_type.color,
        "text": candidate.id,
        "fields": attachment_fields(candidate),
    }


def render_digest(candidates: Sequence[MarkedCandidate]) -> List[List[Dict[str, Any]]]:
    """Render candidates as attachment batches, one batch per message."""
    return list(chunk([render_attachment(c) for c in candidates]))
