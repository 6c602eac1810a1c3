"""
Adapter base — the contract between the orchestrator and a backend.

The orchestrator and the verification engine only talk to identity
products through this interface, never directly to vendor tools.
Parsing of vendor tool output stays inside the concrete adapters.

Unlike probes, adapter install/join calls do not swallow failures:
they raise InstallError / JoinError and the orchestrator treats that
as fatal.  Adapters never retry internally.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from adjoin.adapters.shell.command import CommandRunner
from adjoin.core.models.domain import Backend, BackendStatus, DomainContext
from adjoin.core.models.policy import JoinPolicy
from adjoin.core.services.platform import PlatformInfo


class BackendAdapter(ABC):
    """Abstract base class for identity backends.

    To add a backend:
        1. Subclass BackendAdapter
        2. Implement backend, prerequisites_present, is_installed,
           install, join, status
        3. Register it in the AdapterRegistry
    """

    def __init__(
        self,
        runner: CommandRunner,
        policy: JoinPolicy | None = None,
        platform: PlatformInfo | None = None,
    ):
        self.runner = runner
        self.policy = policy or JoinPolicy()
        self.platform = platform

    @property
    @abstractmethod
    def backend(self) -> Backend:
        """Which backend this adapter drives."""

    @property
    def name(self) -> str:
        return self.backend.value

    @abstractmethod
    def prerequisites_present(self) -> bool:
        """Whether the installable artifacts this backend needs are available.

        Pure query; must be fast, side-effect free, and never raise.
        """

    @abstractmethod
    def is_installed(self) -> bool:
        """Whether the product is installed on this host. Never raises."""

    @abstractmethod
    def install(self, ctx: DomainContext) -> None:
        """Install the backend.

        Raises:
            InstallError: packages missing/corrupt or the package manager failed.
        """

    @abstractmethod
    def join(self, ctx: DomainContext) -> str:
        """Join the host to the domain.

        Returns:
            Human-readable detail of the join.

        Raises:
            JoinError: the join primitive exited non-zero.
        """

    @abstractmethod
    def status(self, ctx: DomainContext) -> BackendStatus:
        """Report post-join status. MUST never raise."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} backend={self.name!r}>"
