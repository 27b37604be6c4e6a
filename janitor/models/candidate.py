"""Marked candidate model and its cache wire format."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Union

from janitor.errors import MalformedCachedRecord


class MarkerType(IntEnum):
    """Provider family that marked a candidate."""

    AWS = 0
    GCP = 1
    K8S = 2

    @property
    def color(self) -> str:
        """Attachment colour used in notification digests."""
        return {
            MarkerType.AWS: "#F4D03F",
            MarkerType.GCP: "#FF0000",
            MarkerType.K8S: "#0000FF",
        }[self]


@dataclass
class MarkedCandidate:
    """A resource recorded as non-compliant, awaiting its grace period.

    The serialized form doubles as the dedup key in the owner's candidate
    set, so serialization must be byte-stable: fields are emitted in a
    fixed order, tag keys are sorted, separators are compact.

    Attributes:
        marker_type: Provider family
        candidate_type: Resource kind
        id: Provider identifier
        owner: Owner tag value, "" when unknown
        ttl: ttl tag value at mark time
        purpose: purpose tag value at mark time
        account: Account or cluster name the candidate belongs to
        tags: Tags at mark time
    """

    marker_type: MarkerType
    candidate_type: str
    id: str
    owner: str = ""
    ttl: str = ""
    purpose: str = ""
    account: str = ""
    tags: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "marker_type": int(self.marker_type),
            "candidate_type": self.candidate_type,
            "id": self.id,
            "owner": self.owner,
            "ttl": self.ttl,
            "purpose": self.purpose,
            "account": self.account,
            "tags": {key: self.tags[key] for key in sorted(self.tags)},
        }

    def serialize(self) -> str:
        """Serialize to the canonical JSON record stored in the cache."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def deserialize(cls, raw: Union[str, bytes]) -> "MarkedCandidate":
        """Decode a cached record.

        Args:
            raw: JSON record as stored in the cache

        Returns:
            Decoded MarkedCandidate

        Raises:
            MalformedCachedRecord: If the record is not a valid candidate
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedCachedRecord(f"Invalid candidate JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("id"), str) or not data["id"]:
            raise MalformedCachedRecord("Candidate record has no id")

        try:
            tags = data.get("tags") or {}
            if not isinstance(tags, dict):
                raise TypeError("tags must be an object")
            return cls(
                marker_type=MarkerType(int(data.get("marker_type", 0))),
                candidate_type=str(data.get("candidate_type", "")),
                id=data["id"],
                owner=str(data.get("owner", "")),
                ttl=str(data.get("ttl", "")),
                purpose=str(data.get("purpose", "")),
                account=str(data.get("account", "")),
                tags={str(k): str(v) for k, v in tags.items()},
            )
        except (TypeError, ValueError) as e:
            raise MalformedCachedRecord(f"Invalid candidate record {data.get('id')}: {e}") from e
