"""Resource providers."""

from .base import ProviderRegistry, ResourceProvider, is_transient
from .cloudcontrol import CloudControlProvider
from .memory import InMemoryProvider

__all__ = ["CloudControlProvider", "InMemoryProvider", "ProviderRegistry", "ResourceProvider", "is_transient"]
