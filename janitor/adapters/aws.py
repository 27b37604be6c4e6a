"""AWS resource adapters.

Maps each AWS resource kind to its list and delete calls, with error
translation into the provider error taxonomy.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from janitor.adapters.base import ResourceAdapter
from janitor.aws.client import DEFAULT_MAX_RETRIES, create_boto_client
from janitor.classify.classifier import FilterChain
from janitor.classify.filters import (
    PassContext,
    TagRule,
    asg_zero_capacity,
    ebs_ignore_attached,
    ec2_ignore_terminated,
    ignore_autoscaling_managed,
    ignore_kubernetes_managed,
    ignore_tag_rules,
    missing_tag,
    no_tags,
    sg_ignore_in_use,
    sg_ignore_referenced_by_group,
    tag_expired,
)
from janitor.errors import ProviderError, ProviderNotFound, ProviderThrottled, ProviderTransient
from janitor.models.candidate import MarkerType
from janitor.models.identity import Identity

logger = logging.getLogger(__name__)

THROTTLE_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "RequestThrottled",
}

NOT_FOUND_CODES = {
    "InvalidInstanceID.NotFound",
    "InvalidVolume.NotFound",
    "InvalidGroup.NotFound",
    "CacheClusterNotFound",
    "LoadBalancerNotFound",
    "AccessPointNotFound",
    "ResourceNotFoundException",
}


def translate_client_error(
    error: ClientError,
    kind: str,
    resource_id: Optional[str] = None,
    not_found_codes: Iterable[str] = (),
    not_found_messages: Optional[Mapping[str, str]] = None,
) -> ProviderError:
    """Map a botocore ClientError onto the provider error taxonomy.

    Args:
        error: Error raised by boto3
        kind: Resource kind of the failing call
        resource_id: Resource targeted by the call (optional)
        not_found_codes: Extra codes meaning "already gone" for this kind
        not_found_messages: Codes meaning "already gone" only when the message
            contains the mapped text (case-insensitive)

    Returns:
        ProviderThrottled, ProviderNotFound or ProviderTransient
    """
    code = error.response.get("Error", {}).get("Code", "Unknown")
    message = error.response.get("Error", {}).get("Message", str(error))
    text = f"{code}: {message}"

    if code in THROTTLE_CODES:
        return ProviderThrottled(text, kind=kind, resource_id=resource_id, code=code)
    if code in NOT_FOUND_CODES or code in set(not_found_codes):
        return ProviderNotFound(text, kind=kind, resource_id=resource_id, code=code)
    needle = (not_found_messages or {}).get(code)
    if needle and needle in message.lower():
        return ProviderNotFound(text, kind=kind, resource_id=resource_id, code=code)
    return ProviderTransient(text, kind=kind, resource_id=resource_id, code=code)


def tags_to_dict(tags: Optional[List[Dict[str, Any]]]) -> Dict[str, str]:
    """Convert an AWS ``[{"Key": k, "Value": v}]`` list into a dict."""
    return {tag["Key"]: tag.get("Value", "") for tag in tags or [] if "Key" in tag}


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AwsAdapter(ResourceAdapter):
    """Table driven AWS adapter.

    Subclasses set:
        KIND: resource kind
        LIST_METHOD: (service, method, result_key, token_param, next_token_key)
        DELETE_METHOD: (service, method, id_field)
        ID_FIELD: key of the identifier in the describe output
        CREATED_FIELD: key of the creation time, None if the kind has none
        EXTRA_NOT_FOUND_CODES: codes meaning "already gone" for this kind only
        NOT_FOUND_MESSAGES: code -> message text that means "already gone"

    Attributes:
        session: boto3 session
        account: Account name recorded on candidates
        region: AWS region
        tag_rules: Configured ``not_tags`` ignore rules
        max_retries: botocore retry attempts per call
    """

    KIND: str = ""
    LIST_METHOD: Tuple[str, str, str, str, str] = ("", "", "", "", "")
    DELETE_METHOD: Tuple[str, str, str] = ("", "", "")
    ID_FIELD: str = ""
    CREATED_FIELD: Optional[str] = None
    EXTRA_NOT_FOUND_CODES: Tuple[str, ...] = ()
    NOT_FOUND_MESSAGES: Dict[str, str] = {}

    def __init__(
        self,
        session: boto3.Session,
        account: str,
        region: str,
        tag_rules: Iterable[TagRule] = (),
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self.session = session
        self.account = account
        self.region = region
        self.tag_rules = list(tag_rules)
        self.max_retries = max_retries
        self._clients: Dict[str, Any] = {}

    @property
    def kind(self) -> str:
        return self.KIND

    @property
    def marker_type(self) -> MarkerType:
        return MarkerType.AWS

    def _client(self, service: str) -> Any:
        if service not in self._clients:
            self._clients[service] = create_boto_client(service, self.session, self.max_retries)
        return self._clients[service]

    def _call(self, service: str, method: str, resource_id: Optional[str] = None, **params: Any) -> Dict[str, Any]:
        try:
            return getattr(self._client(service), method)(**params)
        except ClientError as e:
            raise translate_client_error(
                e, self.KIND, resource_id, self.EXTRA_NOT_FOUND_CODES, self.NOT_FOUND_MESSAGES
            ) from e
        except BotoCoreError as e:
            raise ProviderTransient(str(e), kind=self.KIND, resource_id=resource_id) from e

    def list(self, token: Optional[str] = None) -> Tuple[List[Any], Optional[str]]:
        service, method, result_key, token_param, next_key = self.LIST_METHOD
        params = {token_param: token} if token else {}
        response = self._call(service, method, **params)
        return self._items(response, result_key), response.get(next_key) or None

    def _items(self, response: Dict[str, Any], result_key: str) -> List[Any]:
        return list(response.get(result_key, []))

    def extract_identity(self, item: Dict[str, Any]) -> Identity:
        created = item.get(self.CREATED_FIELD) if self.CREATED_FIELD else None
        return Identity(
            id=item[self.ID_FIELD],
            kind=self.KIND,
            tags=self._tags(item),
            created_at=_utc(created),
        )

    def _tags(self, item: Dict[str, Any]) -> Dict[str, str]:
        return tags_to_dict(item.get("Tags"))

    def candidate_tags(self, identity: Identity) -> Dict[str, str]:
        tags = dict(identity.tags)
        tags["region"] = self.region
        return tags

    def delete(self, resource_id: str) -> None:
        service, method, id_field = self.DELETE_METHOD
        params = self._build_deletion_params(id_field, resource_id)
        self._call(service, method, resource_id=resource_id, **params)
        logger.info(f"Deleted {self.KIND} {resource_id} in {self.account}/{self.region}")

    def _build_deletion_params(self, id_field: str, resource_id: str) -> Dict[str, Any]:
        # Plural id fields (e.g. InstanceIds) take a list
        if id_field.endswith("Ids"):
            return {id_field: [resource_id]}
        return {id_field: resource_id}

    def filter_chain(self) -> FilterChain:
        return FilterChain(
            ignore=[ignore_tag_rules(self.tag_rules)],
            compliance=[no_tags, missing_tag(), tag_expired()],
        )


class Ec2InstanceAdapter(AwsAdapter):
    KIND = "ec2"
    LIST_METHOD = ("ec2", "describe_instances", "Reservations", "NextToken", "NextToken")
    DELETE_METHOD = ("ec2", "terminate_instances", "InstanceIds")
    ID_FIELD = "InstanceId"
    CREATED_FIELD = "LaunchTime"

    def _items(self, response: Dict[str, Any], result_key: str) -> List[Any]:
        return [i for r in response.get(result_key, []) for i in r.get("Instances", [])]

    def filter_chain(self) -> FilterChain:
        chain = super().filter_chain()
        chain.ignore.append(ignore_autoscaling_managed)
        chain.typed_ignore.append(ec2_ignore_terminated)
        return chain


class EbsVolumeAdapter(AwsAdapter):
    KIND = "ebs"
    LIST_METHOD = ("ec2", "describe_volumes", "Volumes", "NextToken", "NextToken")
    DELETE_METHOD = ("ec2", "delete_volume", "VolumeId")
    ID_FIELD = "VolumeId"
    CREATED_FIELD = "CreateTime"

    def filter_chain(self) -> FilterChain:
        chain = super().filter_chain()
        chain.typed_ignore.append(ebs_ignore_attached)
        return chain


class SecurityGroupAdapter(AwsAdapter):
    """Security groups have no creation time; this adapter mostly removes orphans."""

    KIND = "sg"
    LIST_METHOD = ("ec2", "describe_security_groups", "SecurityGroups", "NextToken", "NextToken")
    DELETE_METHOD = ("ec2", "delete_security_group", "GroupId")
    ID_FIELD = "GroupId"

    def filter_chain(self) -> FilterChain:
        return FilterChain(
            ignore=[ignore_tag_rules(self.tag_rules)],
            typed_ignore=[sg_ignore_referenced_by_group, sg_ignore_in_use],
            compliance=[no_tags],
        )

    def prepare_context(self) -> PassContext:
        """Collect security group ids attached to instances and load balancers."""
        referenced = set()
        referenced |= self._referenced(
            "ec2",
            "describe_instances",
            lambda page: (
                sg["GroupId"]
                for r in page.get("Reservations", [])
                for i in r.get("Instances", [])
                for sg in i.get("SecurityGroups", [])
            ),
        )
        referenced |= self._referenced(
            "elbv2",
            "describe_load_balancers",
            lambda page: (sg for lb in page.get("LoadBalancers", []) for sg in lb.get("SecurityGroups", [])),
        )
        referenced |= self._referenced(
            "elb",
            "describe_load_balancers",
            lambda page: (sg for lb in page.get("LoadBalancerDescriptions", []) for sg in lb.get("SecurityGroups", [])),
        )
        logger.debug(f"{len(referenced)} security groups in use in {self.account}/{self.region}")
        return PassContext(referenced_ids=frozenset(referenced))

    def _referenced(self, service: str, method: str, extract) -> set:
        ids = set()
        try:
            for page in self._client(service).get_paginator(method).paginate():
                ids.update(extract(page))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error listing {service} security group references in {self.region}: {e}")
        return ids


class AutoScalingGroupAdapter(AwsAdapter):
    KIND = "asg"
    LIST_METHOD = ("autoscaling", "describe_auto_scaling_groups", "AutoScalingGroups", "NextToken", "NextToken")
    DELETE_METHOD = ("autoscaling", "delete_auto_scaling_group", "AutoScalingGroupName")
    ID_FIELD = "AutoScalingGroupName"
    CREATED_FIELD = "CreatedTime"
    # A missing group comes back as a ValidationError; other validation failures keep the record
    NOT_FOUND_MESSAGES = {"ValidationError": "not found"}

    def _build_deletion_params(self, id_field: str, resource_id: str) -> Dict[str, Any]:
        return {id_field: resource_id, "ForceDelete": True}

    def filter_chain(self) -> FilterChain:
        chain = super().filter_chain()
        chain.ignore.append(ignore_kubernetes_managed)
        chain.typed_compliance.append(asg_zero_capacity)
        return chain


class LaunchConfigurationAdapter(AwsAdapter):
    """Launch configurations cannot be tagged.

    Tags are derived from the name convention ``owner-version-date-ttl``.
    """

    KIND = "lc"
    LIST_METHOD = ("autoscaling", "describe_launch_configurations", "LaunchConfigurations", "NextToken", "NextToken")
    DELETE_METHOD = ("autoscaling", "delete_launch_configuration", "LaunchConfigurationName")
    ID_FIELD = "LaunchConfigurationName"
    CREATED_FIELD = "CreatedTime"
    NAME_TAGS = ("owner", "version", "date", "ttl")

    def _tags(self, item: Dict[str, Any]) -> Dict[str, str]:
        parts = item[self.ID_FIELD].split("-", len(self.NAME_TAGS) - 1)
        return dict(zip(self.NAME_TAGS, parts))


class ElastiCacheAdapter(AwsAdapter):
    KIND = "ec"
    LIST_METHOD = ("elasticache", "describe_cache_clusters", "CacheClusters", "Marker", "Marker")
    DELETE_METHOD = ("elasticache", "delete_cache_cluster", "CacheClusterId")
    ID_FIELD = "CacheClusterId"
    CREATED_FIELD = "CacheClusterCreateTime"

    def _tags(self, item: Dict[str, Any]) -> Dict[str, str]:
        response = self._call(
            "elasticache", "list_tags_for_resource", resource_id=item[self.ID_FIELD], ResourceName=item["ARN"]
        )
        return tags_to_dict(response.get("TagList"))


class ClassicElbAdapter(AwsAdapter):
    KIND = "elb"
    LIST_METHOD = ("elb", "describe_load_balancers", "LoadBalancerDescriptions", "Marker", "NextMarker")
    DELETE_METHOD = ("elb", "delete_load_balancer", "LoadBalancerName")
    ID_FIELD = "LoadBalancerName"
    CREATED_FIELD = "CreatedTime"

    def _tags(self, item: Dict[str, Any]) -> Dict[str, str]:
        name = item[self.ID_FIELD]
        response = self._call("elb", "describe_tags", resource_id=name, LoadBalancerNames=[name])
        tags: Dict[str, str] = {}
        for description in response.get("TagDescriptions", []):
            tags.update(tags_to_dict(description.get("Tags")))
        return tags


class ApplicationElbAdapter(AwsAdapter):
    """ALB and NLB (elbv2) load balancers."""

    KIND = "alb"
    LIST_METHOD = ("elbv2", "describe_load_balancers", "LoadBalancers", "Marker", "NextMarker")
    DELETE_METHOD = ("elbv2", "delete_load_balancer", "LoadBalancerArn")
    ID_FIELD = "LoadBalancerArn"
    CREATED_FIELD = "CreatedTime"

    def _tags(self, item: Dict[str, Any]) -> Dict[str, str]:
        arn = item[self.ID_FIELD]
        response = self._call("elbv2", "describe_tags", resource_id=arn, ResourceArns=[arn])
        tags: Dict[str, str] = {}
        for description in response.get("TagDescriptions", []):
            tags.update(tags_to_dict(description.get("Tags")))
        return tags


class EksClusterAdapter(AwsAdapter):
    """EKS clusters, judged by the tags of their worker nodes.

    Clusters inherit the tags of the first tagged, non-terminated EC2
    instance carrying ``kubernetes.io/cluster/<name>``, layered over the
    cluster's own tags. A cluster with neither is untagged and lands with
    the default owner. Deletion fails while managed node groups remain;
    the record is kept and retried on the next sweep.
    """

    KIND = "eks"
    LIST_METHOD = ("eks", "list_clusters", "clusters", "nextToken", "nextToken")
    DELETE_METHOD = ("eks", "delete_cluster", "name")
    ID_FIELD = "name"
    CLUSTER_TAG_PREFIX = "kubernetes.io/cluster/"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._node_tags: Dict[str, Dict[str, str]] = {}

    def prepare_context(self) -> PassContext:
        """Index node tags by cluster name.

        Raises:
            ProviderError: If instances cannot be listed
        """
        node_tags: Dict[str, Dict[str, str]] = {}
        try:
            for page in self._client("ec2").get_paginator("describe_instances").paginate():
                for reservation in page.get("Reservations", []):
                    for instance in reservation.get("Instances", []):
                        self._index_node(instance, node_tags)
        except ClientError as e:
            raise translate_client_error(e, self.KIND) from e
        except BotoCoreError as e:
            raise ProviderTransient(str(e), kind=self.KIND) from e

        logger.debug(f"{len(node_tags)} EKS clusters with tagged nodes in {self.account}/{self.region}")
        self._node_tags = node_tags
        return PassContext()

    def _index_node(self, instance: Dict[str, Any], node_tags: Dict[str, Dict[str, str]]) -> None:
        if ec2_ignore_terminated(instance, PassContext()):
            return
        tags = tags_to_dict(instance.get("Tags"))
        for key in tags:
            if key.startswith(self.CLUSTER_TAG_PREFIX):
                node_tags.setdefault(key[len(self.CLUSTER_TAG_PREFIX) :], tags)

    def _items(self, response: Dict[str, Any], result_key: str) -> List[Any]:
        return [{"name": name} for name in response.get(result_key, [])]

    def extract_identity(self, item: Dict[str, Any]) -> Identity:
        name = item[self.ID_FIELD]
        cluster = self._call("eks", "describe_cluster", resource_id=name, name=name).get("cluster", {})
        tags = dict(cluster.get("tags") or {})
        tags.update(self._node_tags.get(name, {}))
        return Identity(id=name, kind=self.KIND, tags=tags, created_at=_utc(cluster.get("createdAt")))

    def candidate_tags(self, identity: Identity) -> Dict[str, str]:
        tags = {k: v for k, v in identity.tags.items() if not k.startswith(self.CLUSTER_TAG_PREFIX)}
        tags["region"] = self.region
        return tags
