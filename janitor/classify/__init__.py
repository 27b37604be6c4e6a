"""Resource classification.

Classes:
    FilterChain: Ordered generic and typed filter lists for one kind
    Disposition: Classification outcome
    PassContext: Pass-scoped state for typed filters
    TagRule: Configured tag ignore rule
"""

from __future__ import annotations

from janitor.classify.classifier import Disposition, FilterChain, classify
from janitor.classify.duration import parse_duration, within_ttl
from janitor.classify.filters import PassContext, TagRule

__all__ = [
    "Disposition",
    "FilterChain",
    "PassContext",
    "TagRule",
    "classify",
    "parse_duration",
    "within_ttl",
]
