"""Kubernetes namespace adapter."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Tuple

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from janitor.adapters.base import ResourceAdapter
from janitor.classify.classifier import FilterChain
from janitor.classify.filters import ignore_names, ignore_protected_namespaces, missing_tag, tag_expired
from janitor.errors import ProviderError, ProviderNotFound, ProviderThrottled, ProviderTransient
from janitor.models.candidate import MarkerType
from janitor.models.identity import Identity

logger = logging.getLogger(__name__)

DEFAULT_ANNOTATION_PREFIX = "janitor.io/"
DEFAULT_PAGE_SIZE = 100


def translate_api_exception(error: ApiException, kind: str, resource_id: Optional[str] = None) -> ProviderError:
    """Map a kubernetes ApiException onto the provider error taxonomy."""
    text = f"{error.status}: {error.reason}"
    if error.status == 429:
        return ProviderThrottled(text, kind=kind, resource_id=resource_id, code=str(error.status))
    if error.status == 404:
        return ProviderNotFound(text, kind=kind, resource_id=resource_id, code=str(error.status))
    return ProviderTransient(text, kind=kind, resource_id=resource_id, code=str(error.status))


def load_core_api(kubeconfig: str, context: Optional[str] = None) -> client.CoreV1Api:
    """Build a CoreV1Api client from a kubeconfig file."""
    api_client = config.new_client_from_config(config_file=kubeconfig, context=context)
    return client.CoreV1Api(api_client)


class NamespaceAdapter(ResourceAdapter):
    """Marks and deletes namespaces.

    Owner, ttl and purpose come from annotations under ``annotation_prefix``
    (e.g. ``janitor.io/ttl``); the prefix is stripped so generic filters see
    the same tag names as for cloud resources.

    Attributes:
        api: CoreV1Api client
        account: Cluster name recorded on candidates
        not_namespaces: Namespaces never managed
        not_regex: Patterns of namespaces never managed
        annotation_prefix: Annotation prefix carrying janitor tags
        page_size: Namespaces requested per page
    """

    def __init__(
        self,
        api: client.CoreV1Api,
        account: str,
        not_namespaces: Iterable[str] = (),
        not_regex: Iterable[str] = (),
        annotation_prefix: str = DEFAULT_ANNOTATION_PREFIX,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.api = api
        self.account = account
        self.not_namespaces = list(not_namespaces)
        self.not_regex = list(not_regex)
        self.annotation_prefix = annotation_prefix
        self.page_size = page_size

    @property
    def kind(self) -> str:
        return "namespace"

    @property
    def marker_type(self) -> MarkerType:
        return MarkerType.K8S

    def list(self, token: Optional[str] = None) -> Tuple[List[Any], Optional[str]]:
        params = {"limit": self.page_size}
        if token:
            params["_continue"] = token
        try:
            response = self.api.list_namespace(**params)
        except ApiException as e:
            raise translate_api_exception(e, self.kind) from e
        return list(response.items or []), response.metadata._continue or None

    def extract_identity(self, item: Any) -> Identity:
        metadata = item.metadata
        annotations = metadata.annotations or {}
        tags = {
            key[len(self.annotation_prefix):]: value
            for key, value in annotations.items()
            if key.startswith(self.annotation_prefix)
        }
        return Identity(id=metadata.name, kind=self.kind, tags=tags, created_at=metadata.creation_timestamp)

    def delete(self, resource_id: str) -> None:
        try:
            self.api.delete_namespace(name=resource_id)
        except ApiException as e:
            raise translate_api_exception(e, self.kind, resource_id) from e
        logger.info(f"Deleted namespace {resource_id} in {self.account}")

    def filter_chain(self) -> FilterChain:
        return FilterChain(
            ignore=[ignore_protected_namespaces, ignore_names(self.not_namespaces, self.not_regex)],
            compliance=[missing_tag(), tag_expired()],
        )
