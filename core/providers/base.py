"""Provider interface and per-kind dispatch registry."""

from __future__ import annotations

from typing import Any, Iterable, Protocol, runtime_checkable

from botocore.exceptions import ClientError, ConnectionClosedError, EndpointConnectionError, ReadTimeoutError

from core.constants import THROTTLING_ERROR_CODES
from core.errors import ProviderCreationError, UnsupportedKindError


@runtime_checkable
class ResourceProvider(Protocol):
    """Collaborator that actually creates and deletes cloud resources."""

    def create(self, kind: str, properties: dict[str, Any]) -> dict[str, Any]:
        """Create the resource and return its outputs (must include ``id``)."""
        ...

    def delete(self, kind: str, physical_id: str) -> None:
        ...


class ProviderRegistry:
    """Dispatch resource kinds to the provider registered for them."""

    def __init__(self, default: ResourceProvider | None = None) -> None:
        self._providers: dict[str, ResourceProvider] = {}
        self._default = default

    def register(self, kind: str, provider: ResourceProvider) -> None:
        self._providers[str(getattr(kind, "value", kind))] = provider

    def register_default(self, provider: ResourceProvider) -> None:
        self._default = provider

    def supports(self, kind: str) -> bool:
        return kind in self._providers or self._default is not None

    def for_kind(self, kind: str) -> ResourceProvider:
        provider = self._providers.get(kind, self._default)
        if provider is None:
            raise UnsupportedKindError([kind])
        return provider

    def check_supported(self, kinds: Iterable[str]) -> None:
        missing = [kind for kind in kinds if not self.supports(kind)]
        if missing:
            raise UnsupportedKindError(missing)


def is_transient(exc: BaseException) -> bool:
    """Return True for provider failures worth retrying (throttling, network)."""
    if isinstance(exc, ProviderCreationError):
        return exc.transient
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        return code in THROTTLING_ERROR_CODES
    return isinstance(exc, (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError))


__all__ = ["ResourceProvider", "ProviderRegistry", "is_transient"]
