"""Base class for resource adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

from janitor.classify.classifier import FilterChain
from janitor.classify.filters import PassContext
from janitor.models.candidate import MarkerType
from janitor.models.identity import Identity


class ResourceAdapter(ABC):
    """Abstract base class for all resource adapters.

    Each adapter should:
    1. Have a unique kind
    2. List resources one page at a time, driven by provider tokens
    3. Normalize provider objects into an Identity
    4. Delete by opaque id, raising the provider error taxonomy
    5. Supply the filter chain used to classify its resources
    """

    @property
    @abstractmethod
    def kind(self) -> str:
        """Resource kind handled by this adapter.

        Returns:
            String identifier (e.g., "ec2")
        """
        pass

    @property
    @abstractmethod
    def marker_type(self) -> MarkerType:
        """Provider family recorded on candidates from this adapter."""
        pass

    @abstractmethod
    def list(self, token: Optional[str] = None) -> Tuple[List[Any], Optional[str]]:
        """Fetch one page of resources.

        Args:
            token: Continuation token returned by the previous call, None for the first page

        Returns:
            Tuple of (items, next_token); next_token is None on the last page

        Raises:
            ProviderThrottled: If the provider rate limited the call
            ProviderError: On any other provider failure
        """
        pass

    @abstractmethod
    def extract_identity(self, item: Any) -> Identity:
        """Normalize a provider object into an Identity."""
        pass

    @abstractmethod
    def delete(self, resource_id: str) -> None:
        """Delete a resource.

        Raises:
            ProviderThrottled: If the provider rate limited the call
            ProviderNotFound: If the resource is already gone
            ProviderError: On any other provider failure
        """
        pass

    @abstractmethod
    def filter_chain(self) -> FilterChain:
        """Filters used to classify resources of this kind."""
        pass

    def prepare_context(self) -> PassContext:
        """Compute pass-scoped state for typed filters.

        Called once at the start of every mark pass. The default carries no
        state.
        """
        return PassContext()

    def candidate_tags(self, identity: Identity) -> dict[str, str]:
        """Tags stored on the candidate record."""
        return dict(identity.tags)
