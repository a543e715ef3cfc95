"""Resource registry."""

from .stack import ResourceHandle, Stack

__all__ = ["ResourceHandle", "Stack"]
