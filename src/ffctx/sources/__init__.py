"""Remote sources for project YAML.

The cache and summary code only talk to a ``ProjectSource``; the FlutterFlow
HTTP client is the production implementation.
"""

from __future__ import annotations

from ffctx.sources.base import ProjectSource

__all__ = ["ProjectSource"]
