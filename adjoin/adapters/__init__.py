"""Adapters — identity backends and host command bindings.

Public re-exports for convenient access.
"""

from adjoin.adapters.base import BackendAdapter
from adjoin.adapters.mock import MockBackendAdapter, MockCommandRunner
from adjoin.adapters.registry import AdapterRegistry, build_registry
from adjoin.adapters.shell.command import CommandRunner

__all__ = [
    "AdapterRegistry",
    "BackendAdapter",
    "CommandRunner",
    "MockBackendAdapter",
    "MockCommandRunner",
    "build_registry",
]
