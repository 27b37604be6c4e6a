"""Builds caches, controllers and notifiers from configuration and runs passes."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional

from janitor.adapters.registry import build_aws_adapters, build_kubernetes_adapters
from janitor.aws.client import create_session
from janitor.cli.config import Config
from janitor.lifecycle.controller import LifecycleController
from janitor.models.pass_result import PassPhase, PassResult
from janitor.notify.slack import SlackNotifier
from janitor.store.cache import Cache, RedisCache
from janitor.store.candidates import CandidateStore

logger = logging.getLogger(__name__)


def build_cache(config: Config) -> RedisCache:
    """Connect to the configured Redis server.

    Raises:
        StoreUnavailable: If the server cannot be reached
    """
    cache = RedisCache(host=config.redis_host, port=config.redis_port, db=config.redis_db)
    cache.ping()
    return cache


def build_store(config: Config, cache: Cache, grace_period: Optional[str] = None) -> CandidateStore:
    if grace_period is None:
        return CandidateStore(cache, prefix=config.key_prefix)
    return CandidateStore(cache, grace_period=grace_period, prefix=config.key_prefix)


def build_controllers(
    config: Config,
    cache: Cache,
    cancel_event: Optional[threading.Event] = None,
    account: Optional[str] = None,
    dry_run: bool = False,
) -> List[LifecycleController]:
    """One controller per configured AWS account and Kubernetes cluster.

    Args:
        config: Loaded configuration
        cache: Shared cache
        cancel_event: Event shared by every controller
        account: Only build the controller with this name (optional)
        dry_run: Force deletion off regardless of configuration

    Returns:
        Controllers in configuration order
    """
    controllers = []

    for aws_account in config.aws:
        if account and aws_account.name != account:
            continue
        session = create_session(aws_account.region, aws_account.profile, aws_account.role_arn)
        controllers.append(
            LifecycleController(
                account=aws_account.name,
                adapters=build_aws_adapters(aws_account, session),
                store=build_store(config, cache, aws_account.grace_period),
                delete_enabled=aws_account.delete_enabled and not dry_run,
                cancel_event=cancel_event,
            )
        )

    for cluster in config.kubernetes:
        if account and cluster.name != account:
            continue
        controllers.append(
            LifecycleController(
                account=cluster.name,
                adapters=build_kubernetes_adapters(cluster),
                store=build_store(config, cache, cluster.grace_period),
                delete_enabled=cluster.delete_enabled and not dry_run,
                cancel_event=cancel_event,
            )
        )

    return controllers


def build_notifier(config: Config, cache: Cache) -> Optional[SlackNotifier]:
    """Slack notifier, or None when no token is configured."""
    if not config.slack.token:
        return None
    return SlackNotifier(
        store=build_store(config, cache),
        token=config.slack.token,
        default_owner=config.slack.default_owner,
        channel=config.slack.channel,
    )


def run_passes(
    controllers: List[LifecycleController],
    phase: PassPhase,
    kinds: Optional[Iterable[str]] = None,
) -> List[PassResult]:
    """Run one pass of ``phase`` on every controller, one thread per controller.

    Raises:
        StoreUnavailable: If any controller lost the cache
    """
    if not controllers:
        return []

    kinds = list(kinds) if kinds is not None else None
    with ThreadPoolExecutor(max_workers=len(controllers)) as executor:
        if phase is PassPhase.MARK:
            futures = [executor.submit(c.mark, kinds) for c in controllers]
        else:
            futures = [executor.submit(c.sweep, kinds) for c in controllers]

        results: List[PassResult] = []
        for future in futures:
            results.extend(future.result())
    return results
