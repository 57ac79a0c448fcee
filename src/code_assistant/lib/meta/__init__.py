"""Shared meta-layer utilities used across ``code_assistant``.

The ``meta`` namespace holds infrastructure helpers that are not tied to the
chat pipeline itself. It currently exports:
- ``tools`` for path-safe file, shell and package-manager operations.
"""

from code_assistant.lib.meta import tools

__all__ = ["tools"]
