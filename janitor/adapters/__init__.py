"""Resource adapters."""

from janitor.adapters.base import ResourceAdapter

__all__ = ["ResourceAdapter"]
