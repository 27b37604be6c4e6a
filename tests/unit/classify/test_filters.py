"""Tests for generic and typed filters."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from janitor.classify.filters import (
    PassContext,
    TagRule,
    asg_zero_capacity,
    ebs_ignore_attached,
    ec2_ignore_terminated,
    ignore_autoscaling_managed,
    ignore_kubernetes_managed,
    ignore_names,
    ignore_protected_namespaces,
    ignore_tag_rules,
    missing_tag,
    no_tags,
    sg_ignore_in_use,
    sg_ignore_referenced_by_group,
    tag_expired,
)
from janitor.models.identity import Identity
from tests.fixtures.resources import (
    create_auto_scaling_group,
    create_ec2_instance,
    create_security_group,
    create_volume,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def identity(resource_id="r-1", tags=None, age=timedelta(hours=1)):
    return Identity(id=resource_id, kind="fake", tags=tags or {}, created_at=NOW - age)


class TestTagRules:
    def test_exact_key_value(self) -> None:
        """Test exact key value."""
        rule = TagRule(key="keep", value="true")

        assert rule.matches("keep", "true")
        assert not rule.matches("keep", "false")

    def test_key_regex(self) -> None:
        """Test ignore rule matching on tag key regex."""
        assert TagRule(key_regex="^team-").matches("team-data", "x")

    def test_value_regex(self) -> None:
        """Test ignore rule matching on tag value regex."""
        assert TagRule(value_regex="prod").matches("env", "production")

    def test_ignore_tag_rules(self) -> None:
        """Test ignore tag rules."""
        f = ignore_tag_rules([TagRule(key="keep", value="true")])

        assert f(identity(tags={"keep": "true"}))
        assert not f(identity(tags={"keep": "no"}))
        assert not f(identity())


class TestIgnoreFilters:
    def test_autoscaling_managed(self) -> None:
        """Test autoscaling-managed instances are ignored."""
        assert ignore_autoscaling_managed(identity(tags={"aws:autoscaling:groupName": "web"}))
        assert not ignore_autoscaling_managed(identity(tags={"owner": "bob"}))

    def test_kubernetes_managed(self) -> None:
        """Test kubernetes-managed resources are ignored."""
        assert ignore_kubernetes_managed(identity(tags={"kubernetes.io/cluster/prod": "owned"}))
        assert not ignore_kubernetes_managed(identity(tags={"k8s.io/role": "node"}))

    def test_protected_namespaces(self) -> None:
        """Test protected namespaces are ignored."""
        assert ignore_protected_namespaces(identity("kube-system"))
        assert ignore_protected_namespaces(identity("default"))
        assert not ignore_protected_namespaces(identity("feature-123"))

    def test_ignore_names(self) -> None:
        """Test configured names are ignored."""
        f = ignore_names(["monitoring"], ["^istio-"])

        assert f(identity("monitoring"))
        assert f(identity("istio-system"))
        assert not f(identity("team-a"))


class TestComplianceFilters:
    def test_no_tags(self) -> None:
        """Test resource without tags is non-compliant."""
        assert no_tags(identity())
        assert not no_tags(identity(tags={"owner": "bob"}))

    def test_missing_ttl(self) -> None:
        """Test resource without a ttl tag is non-compliant."""
        f = missing_tag()

        assert f(identity(tags={"owner": "bob"}))
        assert not f(identity(tags={"ttl": "1h"}))

    def test_expired_ttl(self) -> None:
        """Test resource past its ttl is non-compliant."""
        f = tag_expired(now=lambda: NOW)

        assert f(identity(tags={"ttl": "1h"}, age=timedelta(hours=2)))
        assert not f(identity(tags={"ttl": "4h"}, age=timedelta(hours=2)))

    def test_unlimited_ttl_never_expires(self) -> None:
        """Test unlimited ttl never expires."""
        f = tag_expired(now=lambda: NOW)

        assert not f(identity(tags={"ttl": "0"}, age=timedelta(days=3650)))

    def test_negative_ttl_expires(self) -> None:
        """Test negative ttl expires."""
        f = tag_expired(now=lambda: NOW)

        assert f(identity(tags={"ttl": "-1w"}, age=timedelta(days=8)))

    def test_absent_ttl_does_not_match(self) -> None:
        """Test absent ttl does not match."""
        assert not tag_expired(now=lambda: NOW)(identity(tags={"owner": "bob"}))


class TestTypedFilters:
    def test_terminated_instance_ignored(self) -> None:
        """Test terminated instance ignored."""
        context = PassContext()

        assert ec2_ignore_terminated(create_ec2_instance(state="terminated"), context)
        assert not ec2_ignore_terminated(create_ec2_instance(state="running"), context)

    def test_attached_volume_ignored(self) -> None:
        """Test attached volume ignored."""
        context = PassContext()

        assert ebs_ignore_attached(create_volume(state="in-use", attached_to="i-1"), context)
        assert not ebs_ignore_attached(create_volume(), context)

    def test_group_referenced_by_group(self) -> None:
        """Test group referenced by group."""
        context = PassContext()

        assert sg_ignore_referenced_by_group(create_security_group(referenced_by="sg-other"), context)
        assert not sg_ignore_referenced_by_group(create_security_group(), context)

    def test_group_in_use_uses_pass_context(self) -> None:
        """Test group in use uses pass context."""
        group = create_security_group("sg-1")

        assert sg_ignore_in_use(group, PassContext(referenced_ids=frozenset({"sg-1"})))
        assert not sg_ignore_in_use(group, PassContext())

    def test_zero_capacity_is_non_compliant(self) -> None:
        """Test zero capacity is non compliant."""
        context = PassContext()

        assert asg_zero_capacity(create_auto_scaling_group(desired=0), context)
        assert not asg_zero_capacity(create_auto_scaling_group(desired=3), context)
