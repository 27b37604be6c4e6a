"""Normalized resource identity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

OWNER_TAG = "owner"
TTL_TAG = "ttl"
PURPOSE_TAG = "purpose"


@dataclass
class Identity:
    """Kind-independent snapshot of a resource taken at list time.

    Generic filters only ever see this view, which keeps them portable
    across resource kinds.

    Attributes:
        id: Provider identifier, opaque to the core
        kind: Resource kind (e.g. "ec2", "namespace")
        tags: Tags or annotations as a flat string map
        created_at: Creation time (timezone-aware UTC), if the provider reports one
    """

    id: str
    kind: str
    tags: Dict[str, str] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def tag(self, key: str) -> str:
        """Return tag value or empty string when absent."""
        return self.tags.get(key, "")

    @property
    def owner(self) -> str:
        return self.tag(OWNER_TAG)
