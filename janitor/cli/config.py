"""Configuration loading and validation."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from janitor.classify.duration import parse_grace_period
from janitor.classify.filters import TagRule
from janitor.errors import ConfigError, InvalidDuration

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./config.yml"
DEFAULT_REDIS_HOST = "127.0.0.1"
DEFAULT_REDIS_PORT = 6379
DEFAULT_GRACE_PERIOD = "24h"
DEFAULT_MAX_RETRIES = 10
DEFAULT_KEY_PREFIX = "janitor"
DEFAULT_ANNOTATION_PREFIX = "janitor.io/"

VALID_AWS_CANDIDATES = ("ec2", "ebs", "sg", "asg", "lc", "ec", "elb", "alb", "eks")


@dataclass
class AwsAccountConfig:
    """One AWS account/region under management."""

    name: str
    region: str
    candidates: List[str] = field(default_factory=list)
    role_arn: Optional[str] = None
    profile: Optional[str] = None
    not_tags: List[TagRule] = field(default_factory=list)
    grace_period: str = DEFAULT_GRACE_PERIOD
    delete_enabled: bool = False
    max_retries: int = DEFAULT_MAX_RETRIES


@dataclass
class KubernetesClusterConfig:
    """One Kubernetes cluster under management."""

    name: str
    kubeconfig: str = ""
    context: Optional[str] = None
    not_namespaces: List[str] = field(default_factory=list)
    not_regex: List[str] = field(default_factory=list)
    annotation_prefix: str = DEFAULT_ANNOTATION_PREFIX
    grace_period: str = DEFAULT_GRACE_PERIOD
    delete_enabled: bool = False


@dataclass
class SlackConfig:
    token: str = ""
    default_owner: str = ""
    channel: str = ""


@dataclass
class Config:
    """Janitor configuration.

    Attributes:
        redis_host: Redis host
        redis_port: Redis port
        redis_db: Redis database number
        key_prefix: Prefix of every cache key
        log_level: Default log level
        aws: Managed AWS accounts
        kubernetes: Managed Kubernetes clusters
        slack: Slack notifier settings
    """

    redis_host: str = DEFAULT_REDIS_HOST
    redis_port: int = DEFAULT_REDIS_PORT
    redis_db: int = 0
    key_prefix: str = DEFAULT_KEY_PREFIX
    log_level: str = "INFO"
    aws: List[AwsAccountConfig] = field(default_factory=list)
    kubernetes: List[KubernetesClusterConfig] = field(default_factory=list)
    slack: SlackConfig = field(default_factory=SlackConfig)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load configuration from YAML.

        Path resolution: explicit argument, then $JANITOR_CONFIG, then
        ./config.yml. $JANITOR_LOG_LEVEL overrides the log level.

        Args:
            path: Config file path (optional)

        Returns:
            Validated Config

        Raises:
            ConfigError: If the file is missing, unparseable or invalid
        """
        config_path = Path(path or os.environ.get("JANITOR_CONFIG", DEFAULT_CONFIG_PATH)).expanduser()
        logger.info(f"Loading config from {config_path}")

        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Could not load config {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse config {config_path}: {e}") from e

        config = cls.from_dict(data)

        env_level = os.environ.get("JANITOR_LOG_LEVEL")
        if env_level:
            config.log_level = env_level.upper()

        config.validate()
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build a Config from parsed YAML, applying defaults."""
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping")

        aws_accounts = []
        for entry in data.get("aws") or []:
            aws_accounts.append(
                AwsAccountConfig(
                    name=entry.get("name") or "",
                    region=entry.get("region") or "",
                    candidates=list(entry.get("candidates") or []),
                    role_arn=entry.get("role_arn") or entry.get("iamRole"),
                    profile=entry.get("profile"),
                    not_tags=[
                        TagRule(
                            key=rule.get("key") or "",
                            value=rule.get("value") or "",
                            key_regex=rule.get("key_regex") or "",
                            value_regex=rule.get("value_regex") or "",
                        )
                        for rule in _regex_safe(entry.get("not_tags") or [])
                    ],
                    grace_period=entry.get("grace_period") or DEFAULT_GRACE_PERIOD,
                    delete_enabled=bool(entry.get("delete_enabled", False)),
                    max_retries=int(entry.get("max_retries") or 0) or DEFAULT_MAX_RETRIES,
                )
            )

        clusters = []
        for entry in data.get("kubernetes") or []:
            clusters.append(
                KubernetesClusterConfig(
                    name=entry.get("name") or "",
                    kubeconfig=entry.get("kubeconfig") or str(Path.home() / ".kube" / "config"),
                    context=entry.get("context") or entry.get("kubecontext"),
                    not_namespaces=list(entry.get("not_namespaces") or []),
                    not_regex=list(entry.get("not_regex") or []),
                    annotation_prefix=entry.get("annotation_prefix") or DEFAULT_ANNOTATION_PREFIX,
                    grace_period=entry.get("grace_period") or DEFAULT_GRACE_PERIOD,
                    delete_enabled=bool(entry.get("delete_enabled", False)),
                )
            )

        slack = data.get("slack") or {}
        return cls(
            redis_host=data.get("redis_host") or DEFAULT_REDIS_HOST,
            redis_port=int(data.get("redis_port") or DEFAULT_REDIS_PORT),
            redis_db=int(data.get("redis_db") or 0),
            key_prefix=data.get("key_prefix") or DEFAULT_KEY_PREFIX,
            log_level=str(data.get("log_level") or "INFO").upper(),
            aws=aws_accounts,
            kubernetes=clusters,
            slack=SlackConfig(
                token=slack.get("token") or "",
                default_owner=slack.get("default_owner") or "",
                channel=slack.get("channel") or "",
            ),
        )

    def validate(self) -> bool:
        """Validate configuration.

        Collects every problem before failing.

        Returns:
            True if validation passes

        Raises:
            ConfigError: Listing every validation failure
        """
        errors: List[str] = []

        for account in self.aws:
            label = account.name or "<unnamed aws account>"
            if not account.name:
                errors.append(f"({label}) name is required")
            if not account.region:
                errors.append(f"({label}) region is required")
            if not account.candidates:
                errors.append(f"({label}) must select an aws object to mark")
            invalid = [c for c in account.candidates if c not in VALID_AWS_CANDIDATES]
            if invalid:
                errors.append(f"({label}) the following candidates are invalid: {', '.join(invalid)}")
            errors.extend(_duration_errors(label, account.grace_period))

        for cluster in self.kubernetes:
            label = cluster.name or "<unnamed cluster>"
            if not cluster.name:
                errors.append(f"({label}) name is required")
            if not cluster.kubeconfig:
                errors.append(f"({label}) kubeconfig is required")
            for pattern in cluster.not_regex:
                try:
                    re.compile(pattern)
                except re.error as e:
                    errors.append(f"({label}) invalid not_regex {pattern!r}: {e}")
            errors.extend(_duration_errors(label, cluster.grace_period))

        if self.slack.token and not self.slack.default_owner:
            errors.append("(slack) default_owner is required when a token is set")

        if errors:
            raise ConfigError("\n".join(errors))
        return True


def _duration_errors(label: str, value: str) -> List[str]:
    try:
        parse_grace_period(value)
    except InvalidDuration as e:
        return [f"({label}) invalid grace_period: {e}"]
    return []


def _regex_safe(rules: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    for rule in rules:
        for key in ("key_regex", "value_regex"):
            if rule.get(key):
                try:
                    re.compile(rule[key])
                except re.error as e:
                    raise ConfigError(f"invalid {key} {rule[key]!r}: {e}") from e
    return rules
