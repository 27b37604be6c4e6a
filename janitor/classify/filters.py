"""Filter predicates used by the classifier.

Two categories exist:

- generic filters take an :class:`Identity` and work for every kind
- typed filters take the raw provider object plus the pass context, for
  checks that cannot be expressed on the normalized view

Ignore filters return True to exclude a resource from management.
Compliance filters return True when the resource is NOT compliant.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Pattern

from janitor.classify.duration import is_unlimited, within_ttl
from janitor.models.identity import TTL_TAG, Identity

logger = logging.getLogger(__name__)

AUTOSCALING_GROUP_TAG = "aws:autoscaling:groupName"
KUBERNETES_TAG_PREFIX = "kubernetes.io"
PROTECTED_NAMESPACES = frozenset({"default", "kube-system", "kube-public"})


@dataclass
class PassContext:
    """Scratch state computed once per mark pass and handed to typed filters.

    Attributes:
        referenced_ids: Ids currently referenced by other resources
        now: Reference time for the pass
    """

    referenced_ids: FrozenSet[str] = field(default_factory=frozenset)
    now: Optional[datetime] = None


GenericFilter = Callable[[Identity], bool]
TypedFilter = Callable[[Any, PassContext], bool]


@dataclass
class TagRule:
    """Ignore rule from the ``not_tags`` configuration.

    A rule matches a tag when key and value are both equal, or when the key
    regex or the value regex matches.
    """

    key: str = ""
    value: str = ""
    key_regex: str = ""
    value_regex: str = ""

    def __post_init__(self) -> None:
        self._key_pattern: Optional[Pattern[str]] = re.compile(self.key_regex) if self.key_regex else None
        self._value_pattern: Optional[Pattern[str]] = re.compile(self.value_regex) if self.value_regex else None

    def matches(self, key: str, value: str) -> bool:
        if self.key and self.key == key and self.value == value:
            return True
        if self._key_pattern is not None and self._key_pattern.search(key):
            return True
        if self._value_pattern is not None and self._value_pattern.search(value):
            return True
        return False

    def describe(self) -> str:
        if self.key:
            return f"{self.key}:{self.value}"
        return self.key_regex or self.value_regex


# ----------------------------------------------------------------- ignore


def ignore_tag_rules(rules: Iterable[TagRule]) -> GenericFilter:
    """Build a filter ignoring resources carrying any tag matched by ``rules``."""
    rule_list: List[TagRule] = list(rules)

    def _filter(identity: Identity) -> bool:
        for key, value in identity.tags.items():
            for rule in rule_list:
                if rule.matches(key, value):
                    logger.debug(f"Ignoring {identity.id}. Reason: matched ignore rule {rule.describe()}")
                    return True
        return False

    return _filter


def ignore_autoscaling_managed(identity: Identity) -> bool:
    if AUTOSCALING_GROUP_TAG in identity.tags:
        logger.debug(f"Ignoring {identity.id}. Reason: managed by ASG")
        return True
    return False


def ignore_kubernetes_managed(identity: Identity) -> bool:
    for key in identity.tags:
        if key.split("/")[0] == KUBERNETES_TAG_PREFIX:
            logger.debug(f"Ignoring {identity.id}. Reason: kubernetes resource")
            return True
    return False


def ignore_protected_namespaces(identity: Identity) -> bool:
    if identity.id in PROTECTED_NAMESPACES:
        logger.debug(f"Ignoring {identity.id}. Reason: protected namespace")
        return True
    return False


def ignore_names(names: Iterable[str] = (), patterns: Iterable[str] = ()) -> GenericFilter:
    """Build a filter ignoring ids listed in ``names`` or matching ``patterns``."""
    name_set = frozenset(names)
    compiled = [re.compile(p) for p in patterns if p]

    def _filter(identity: Identity) -> bool:
        if identity.id in name_set:
            logger.debug(f"Ignoring {identity.id}. Reason: matched ignore rule")
            return True
        for pattern in compiled:
            if pattern.search(identity.id):
                logger.debug(f"Ignoring {identity.id}. Reason: matched ignore regex {pattern.pattern}")
                return True
        return False

    return _filter


# ------------------------------------------------------------- compliance


def no_tags(identity: Identity) -> bool:
    if not identity.tags:
        logger.info(f"Adding candidate {identity.id}. Reason: no tags, created: {identity.created_at}")
        return True
    return False


def missing_tag(key: str = TTL_TAG) -> GenericFilter:
    """Build a filter flagging resources without the required tag."""

    def _filter(identity: Identity) -> bool:
        if key not in identity.tags:
            logger.info(f"Adding candidate {identity.id}. Reason: no {key} tag, created: {identity.created_at}")
            return True
        return False

    return _filter


def tag_expired(key: str = TTL_TAG, now: Optional[Callable[[], datetime]] = None) -> GenericFilter:
    """Build a filter flagging resources whose ttl tag has elapsed.

    A ttl of "0" never expires. Absent or unparseable ttl values never match.
    """

    def _filter(identity: Identity) -> bool:
        if key not in identity.tags:
            return False
        ttl = identity.tags[key]
        if is_unlimited(ttl):
            logger.debug(f"Ignoring {identity.id}. Reason: unlimited ttl")
            return False
        if not within_ttl(ttl, identity.created_at, now() if now else None):
            logger.info(f"Adding candidate {identity.id}. Reason: ttl expired, created: {identity.created_at}")
            return True
        return False

    return _filter


# ------------------------------------------------------------------ typed


def ec2_ignore_terminated(instance: Dict[str, Any], context: PassContext) -> bool:
    if instance.get("State", {}).get("Name") == "terminated":
        logger.debug(f"Ignoring {instance.get('InstanceId')}. Reason: terminated")
        return True
    return False


def ebs_ignore_attached(volume: Dict[str, Any], context: PassContext) -> bool:
    if volume.get("Attachments") and volume.get("State") == "in-use":
        logger.debug(f"Ignoring {volume.get('VolumeId')}. Reason: attached to instance")
        return True
    return False


def sg_ignore_referenced_by_group(group: Dict[str, Any], context: PassContext) -> bool:
    for rule in group.get("IpPermissions", []) + group.get("IpPermissionsEgress", []):
        if rule.get("UserIdGroupPairs"):
            logger.debug(f"Ignoring {group.get('GroupId')}. Reason: referenced by another security group")
            return True
    return False


def sg_ignore_in_use(group: Dict[str, Any], context: PassContext) -> bool:
    if group.get("GroupId") in context.referenced_ids:
        logger.debug(f"Ignoring {group.get('GroupId')}. Reason: attached to a resource")
        return True
    return False


def asg_zero_capacity(group: Dict[str, Any], context: PassContext) -> bool:
    if group.get("DesiredCapacity") == 0:
        logger.info(f"Adding candidate {group.get('AutoScalingGroupName')}. Reason: zero desired capacity")
        return True
    return False
