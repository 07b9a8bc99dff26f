"""
Safari Index distribution import namespace.

This package re-exports the core `topic_bridge` package for convenience.
"""

from importlib.metadata import PackageNotFoundError, version

# src/safariindex/__init__.py
from topic_bridge import *  # noqa: F401,F403
from topic_bridge import __all__ as _bridge_all

try:
    __version__ = version("safariindex-topic-bridge")
except PackageNotFoundError:  # pragma: no cover - fallback for editable/local non-built environments
    __version__ = "0+unknown"

__all__ = ["__version__", *_bridge_all]
