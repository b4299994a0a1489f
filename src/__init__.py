# src/__init__.py — v1
"""teamrun — durable multi-agent pipeline run engine."""

from teamrun.version import __version__

__all__ = ["__version__"]
