"""Image metadata readers."""

from .metadata import extract_metadata

__all__ = ["extract_metadata"]
