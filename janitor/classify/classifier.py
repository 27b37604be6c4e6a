"""Classification of resources into ignore / non-compliant / compliant.

Evaluates ordered filter chains against a resource. Phases run in a fixed
order and the first phase with a matching filter decides the outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

from janitor.classify.filters import GenericFilter, PassContext, TypedFilter
from janitor.models.identity import Identity


class Disposition(Enum):
    """Classification outcome."""

    IGNORE = "ignore"
    NON_COMPLIANT = "non-compliant"
    COMPLIANT = "compliant"


def classify(
    identity: Identity,
    raw: Any,
    ignore_filters: Sequence[GenericFilter] = (),
    typed_ignore_filters: Sequence[TypedFilter] = (),
    compliance_filters: Sequence[GenericFilter] = (),
    typed_compliance_filters: Sequence[TypedFilter] = (),
    context: Optional[PassContext] = None,
) -> Disposition:
    """Classify a resource.

    Evaluation order:
        1. generic ignore filters → IGNORE
        2. typed ignore filters → IGNORE
        3. generic compliance filters → NON_COMPLIANT
        4. typed compliance filters → NON_COMPLIANT
        5. otherwise COMPLIANT

    Filters within a phase are OR'd and evaluation stops at the first match,
    so order only changes how many filters run, never the result.

    Args:
        identity: Normalized resource view for generic filters
        raw: Provider object for typed filters
        ignore_filters: Generic ignore filters
        typed_ignore_filters: Typed ignore filters
        compliance_filters: Generic compliance filters (True = not compliant)
        typed_compliance_filters: Typed compliance filters (True = not compliant)
        context: Pass-scoped state for typed filters

    Returns:
        Disposition for the resource
    """
    if context is None:
        context = PassContext()

    if any(f(identity) for f in ignore_filters):
        return Disposition.IGNORE
    if any(f(raw, context) for f in typed_ignore_filters):
        return Disposition.IGNORE
    if any(f(identity) for f in compliance_filters):
        return Disposition.NON_COMPLIANT
    if any(f(raw, context) for f in typed_compliance_filters):
        return Disposition.NON_COMPLIANT
    return Disposition.COMPLIANT


@dataclass
class FilterChain:
    """Ordered filter lists for one resource kind.

    Attributes:
        ignore: Generic ignore filters
        typed_ignore: Typed ignore filters
        compliance: Generic compliance filters
        typed_compliance: Typed compliance filters
    """

    ignore: list[GenericFilter] = field(default_factory=list)
    typed_ignore: list[TypedFilter] = field(default_factory=list)
    compliance: list[GenericFilter] = field(default_factory=list)
    typed_compliance: list[TypedFilter] = field(default_factory=list)

    def classify(self, identity: Identity, raw: Any, context: Optional[PassContext] = None) -> Disposition:
        return classify(
            identity,
            raw,
            ignore_filters=self.ignore,
            typed_ignore_filters=self.typed_ignore,
            compliance_filters=self.compliance,
            typed_compliance_filters=self.typed_compliance,
            context=context,
        )
