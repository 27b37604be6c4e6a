"""Error taxonomy shared by adapters, the candidate store and the controller."""

from __future__ import annotations

from typing import Optional


class JanitorError(Exception):
    """Base class for all janitor errors."""


class ProviderError(JanitorError):
    """A resource provider call failed.

    Attributes:
        kind: Resource kind the call was made for
        resource_id: Resource identifier, if the call targeted one
        code: Provider error code (e.g. "Throttling"), if known
    """

    def __init__(
        self,
        message: str,
        kind: str = "",
        resource_id: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.resource_id = resource_id
        self.code = code


class ProviderThrottled(ProviderError):
    """Provider rate limit hit. The next scheduled run retries."""


class ProviderTransient(ProviderError):
    """Provider call failed for a single item; the pass continues."""


class ProviderNotFound(ProviderError):
    """Resource no longer exists at the provider."""


class StoreUnavailable(JanitorError):
    """The shared cache could not be reached."""


class NoCandidates(JanitorError):
    """Owner has no stored candidates. Expected, never a failure."""


class MalformedCachedRecord(JanitorError):
    """A cached candidate record could not be decoded."""


class InvalidDuration(ValueError):
    """Duration string does not match the duration grammar."""


class ConfigError(JanitorError):
    """Configuration failed validation."""


class NotifyError(JanitorError):
    """Notification channel rejected a request."""
