"""boto3 session and client construction."""

from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 10


def create_session(
    region_name: str,
    profile_name: Optional[str] = None,
    role_arn: Optional[str] = None,
    session_name: str = "resource-janitor",
) -> boto3.Session:
    """Create a boto3 session, assuming ``role_arn`` when given.

    Args:
        region_name: AWS region
        profile_name: AWS profile name (optional)
        role_arn: IAM role to assume (optional)
        session_name: STS role session name

    Returns:
        boto3 Session bound to the region
    """
    session = boto3.Session(profile_name=profile_name, region_name=region_name)
    if not role_arn:
        return session

    logger.debug(f"Assuming role {role_arn}")
    credentials = session.client("sts").assume_role(RoleArn=role_arn, RoleSessionName=session_name)["Credentials"]
    return boto3.Session(
        aws_access_key_id=credentials["AccessKeyId"],
        aws_secret_access_key=credentials["SecretAccessKey"],
        aws_session_token=credentials["SessionToken"],
        region_name=region_name,
    )


def create_boto_client(
    service_name: str,
    session: boto3.Session,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> Any:
    """Create a boto3 client with standard-mode retries.

    Args:
        service_name: AWS service name (e.g. "ec2")
        session: Session to build the client from
        max_retries: Maximum attempts for botocore's retry handler

    Returns:
        boto3 client
    """
    config = BotoConfig(retries={"max_attempts": max_retries, "mode": "standard"})
    return session.client(service_name, config=config)
