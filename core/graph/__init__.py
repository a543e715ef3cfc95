"""Dependency graph and reference resolution."""

from .builder import DependencyGraph, DependencyGraphBuilder
from .resolver import ReferenceResolver, find_references

__all__ = ["DependencyGraph", "DependencyGraphBuilder", "ReferenceResolver", "find_references"]
