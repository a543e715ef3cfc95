"""API routes."""

from .plan import handle as plan
from .synth import handle as synth
from .templates import handle as templates

__all__ = ["plan", "synth", "templates"]
