"""
Adapter registry — one adapter per backend kind.

The orchestrator and the verification engine never construct adapters
themselves; they look them up here.  This is where tests swap real
adapters for MockBackendAdapter.
"""

from __future__ import annotations

import logging
from typing import Any

from adjoin.adapters.base import BackendAdapter
from adjoin.adapters.shell.command import CommandRunner
from adjoin.core.models.domain import Backend
from adjoin.core.models.policy import JoinPolicy
from adjoin.core.services.platform import PlatformInfo

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Registry of backend adapters keyed by Backend."""

    def __init__(self) -> None:
        self._adapters: dict[Backend, BackendAdapter] = {}

    def register(self, adapter: BackendAdapter) -> None:
        """Register an adapter, replacing any previous one for its backend."""
        backend = adapter.backend
        if backend in self._adapters:
            logger.warning("Overwriting existing adapter: %s", backend.value)
        self._adapters[backend] = adapter
        logger.debug("Registered adapter: %r", adapter)

    def unregister(self, backend: Backend) -> None:
        self._adapters.pop(backend, None)

    def get(self, backend: Backend) -> BackendAdapter | None:
        return self._adapters.get(backend)

    def require(self, backend: Backend) -> BackendAdapter:
        """Look up an adapter that must exist."""
        adapter = self._adapters.get(backend)
        if adapter is None:
            raise KeyError(f"No adapter registered for '{backend.value}'")
        return adapter

    def list_backends(self) -> list[Backend]:
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered adapter."""
        status = {}
        for backend, adapter in self._adapters.items():
            try:
                artifacts = adapter.prerequisites_present()
            except Exception:
                artifacts = False
            try:
                installed = adapter.is_installed()
            except Exception:
                installed = False
            status[backend.value] = {
                "name": backend.value,
                "label": backend.label,
                "prerequisites_present": artifacts,
                "installed": installed,
                "type": adapter.__class__.__name__,
            }
        return status


def build_registry(
    runner: CommandRunner | None = None,
    policy: JoinPolicy | None = None,
    platform: PlatformInfo | None = None,
) -> AdapterRegistry:
    """Registry with the real Centrify and SSSD adapters."""
    from adjoin.adapters.identity.centrify import CentrifyAdapter
    from adjoin.adapters.identity.sssd import SssdAdapter

    runner = runner or CommandRunner()
    registry = AdapterRegistry()
    registry.register(CentrifyAdapter(runner, policy, platform))
    registry.register(SssdAdapter(runner, policy, platform))
    return registry
