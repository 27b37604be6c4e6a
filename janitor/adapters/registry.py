"""Adapter registry: kind name to adapter class."""

from __future__ import annotations

from typing import Dict, List, Type

import boto3

from janitor.adapters.aws import (
    ApplicationElbAdapter,
    AutoScalingGroupAdapter,
    AwsAdapter,
    ClassicElbAdapter,
    EbsVolumeAdapter,
    Ec2InstanceAdapter,
    EksClusterAdapter,
    ElastiCacheAdapter,
    LaunchConfigurationAdapter,
    SecurityGroupAdapter,
)
from janitor.adapters.base import ResourceAdapter
from janitor.adapters.kubernetes import NamespaceAdapter, load_core_api
from janitor.cli.config import AwsAccountConfig, KubernetesClusterConfig

AWS_ADAPTERS: Dict[str, Type[AwsAdapter]] = {
    cls.KIND: cls
    for cls in (
        Ec2InstanceAdapter,
        EbsVolumeAdapter,
        SecurityGroupAdapter,
        AutoScalingGroupAdapter,
        LaunchConfigurationAdapter,
        ElastiCacheAdapter,
        ClassicElbAdapter,
        ApplicationElbAdapter,
        EksClusterAdapter,
    )
}


def build_aws_adapters(account: AwsAccountConfig, session: boto3.Session) -> List[ResourceAdapter]:
    """Instantiate one adapter per configured candidate kind, in config order.

    Raises:
        KeyError: If a candidate kind has no adapter
    """
    return [
        AWS_ADAPTERS[kind](
            session=session,
            account=account.name,
            region=account.region,
            tag_rules=account.not_tags,
            max_retries=account.max_retries,
        )
        for kind in account.candidates
    ]


def build_kubernetes_adapters(cluster: KubernetesClusterConfig) -> List[ResourceAdapter]:
    api = load_core_api(cluster.kubeconfig, cluster.context)
    return [
        NamespaceAdapter(
            api=api,
            account=cluster.name,
            not_namespaces=cluster.not_namespaces,
            not_regex=cluster.not_regex,
            annotation_prefix=cluster.annotation_prefix,
        )
    ]
