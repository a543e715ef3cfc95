"""Least-privilege policy attachment."""

from .attacher import PolicyAttacher

__all__ = ["PolicyAttacher"]
