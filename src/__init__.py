# src/__init__.py — v1
"""pokefusion: staged multi-provider fusion image generation."""

from pokefusion.version import __version__

__all__ = ["__version__"]
