"""
Backend join orchestrator — select one backend, install it, join it.

Flow:
    unconfigured → primary-selected  → primary-installed  → joined
    unconfigured → fallback-selected → fallback-installed → joined
    any state    → failed (terminal, on adapter error)

The fallback is availability-driven, not retry-driven: the decision is
made once, before anything is installed, from whether the primary
agent's packages are on disk.  After that, an install or join failure
is fatal for the run and the other backend is never attempted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from adjoin.adapters.base import BackendAdapter
from adjoin.adapters.registry import AdapterRegistry
from adjoin.core.errors import AdjoinError, InstallError, JoinError
from adjoin.core.models.domain import Backend, DomainContext, JoinOutcome

logger = logging.getLogger(__name__)


class JoinState(str, Enum):
    UNCONFIGURED = "unconfigured"
    PRIMARY_SELECTED = "primary-selected"
    PRIMARY_INSTALLED = "primary-installed"
    FALLBACK_SELECTED = "fallback-selected"
    FALLBACK_INSTALLED = "fallback-installed"
    JOINED = "joined"
    FAILED = "failed"


_SELECTED = {
    Backend.PRIMARY_AGENT: JoinState.PRIMARY_SELECTED,
    Backend.FALLBACK_BROKER: JoinState.FALLBACK_SELECTED,
}
_INSTALLED = {
    Backend.PRIMARY_AGENT: JoinState.PRIMARY_INSTALLED,
    Backend.FALLBACK_BROKER: JoinState.FALLBACK_INSTALLED,
}

# Legal transitions; FAILED is reachable from every non-terminal state.
_TRANSITIONS: dict[JoinState, set[JoinState]] = {
    JoinState.UNCONFIGURED: {JoinState.PRIMARY_SELECTED, JoinState.FALLBACK_SELECTED},
    JoinState.PRIMARY_SELECTED: {JoinState.PRIMARY_INSTALLED},
    JoinState.FALLBACK_SELECTED: {JoinState.FALLBACK_INSTALLED},
    JoinState.PRIMARY_INSTALLED: {JoinState.JOINED},
    JoinState.FALLBACK_INSTALLED: {JoinState.JOINED},
    JoinState.JOINED: set(),
    JoinState.FAILED: set(),
}


class OrchestrationError(AdjoinError):
    """The orchestrator was driven out of order."""


class JoinOrchestrator:
    """Drive exactly one backend adapter to a joined state.

    One orchestrator instance handles one run; its state history is
    kept for inspection and the audit ledger.

    *before_join* runs once the backend is installed and before it
    joins; an exception from it fails the join.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        before_join: Callable[[Backend, DomainContext], None] | None = None,
    ):
        self._registry = registry
        self._before_join = before_join
        self._state = JoinState.UNCONFIGURED
        self._history: list[JoinState] = [JoinState.UNCONFIGURED]
        self._backend: Backend | None = None
        self.warnings: list[str] = []

    @property
    def state(self) -> JoinState:
        return self._state

    @property
    def history(self) -> list[JoinState]:
        return list(self._history)

    @property
    def backend(self) -> Backend | None:
        """The backend selected for this run, once chosen."""
        return self._backend

    def _transition(self, new: JoinState) -> None:
        if new is not JoinState.FAILED and new not in _TRANSITIONS[self._state]:
            raise OrchestrationError(f"Illegal transition {self._state.value} → {new.value}")
        if self._state in (JoinState.JOINED, JoinState.FAILED):
            raise OrchestrationError(f"Run already finished ({self._state.value})")
        logger.debug("Join state: %s → %s", self._state.value, new.value)
        self._state = new
        self._history.append(new)

    def _adapter(self, backend: Backend) -> BackendAdapter:
        return self._registry.require(backend)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    # ── Operations ───────────────────────────────────────────────

    def select_backend(self, ctx: DomainContext) -> Backend:
        """Choose a backend from artifact availability. No side effects."""
        primary = self._adapter(Backend.PRIMARY_AGENT)
        try:
            present = primary.prerequisites_present()
        except Exception as e:
            logger.debug("Primary prerequisite check raised: %s", e)
            present = False

        if present:
            logger.info("Primary agent packages found — selecting %s", Backend.PRIMARY_AGENT.label)
            return Backend.PRIMARY_AGENT
        return Backend.FALLBACK_BROKER

    def install(self, backend: Backend, ctx: DomainContext) -> None:
        """Install *backend*. Raises InstallError (fatal)."""
        self._require_selected(backend, _SELECTED[backend])
        try:
            self._adapter(backend).install(ctx)
        except InstallError:
            self._transition(JoinState.FAILED)
            raise
        except Exception as e:
            self._transition(JoinState.FAILED)
            raise InstallError(f"{backend.label} install raised: {e}") from e
        self._transition(_INSTALLED[backend])
        logger.info("%s installed", backend.label)

    def join(self, backend: Backend, ctx: DomainContext) -> JoinOutcome:
        """Join the domain with *backend*. Raises JoinError (fatal)."""
        self._require_selected(backend, _INSTALLED[backend])
        try:
            if self._before_join is not None:
                self._before_join(backend, ctx)
            detail = self._adapter(backend).join(ctx)
        except JoinError:
            self._transition(JoinState.FAILED)
            raise
        except Exception as e:
            self._transition(JoinState.FAILED)
            raise JoinError(f"{backend.label} join raised: {e}") from e
        self._transition(JoinState.JOINED)
        logger.info("Successfully joined %s using %s", ctx.domain_name, backend.label)
        return JoinOutcome(backend=backend, joined=True, detail=detail)

    def _require_selected(self, backend: Backend, expected: JoinState) -> None:
        if self._backend is not backend or self._state is not expected:
            raise OrchestrationError(
                f"Cannot drive {backend.value} from state {self._state.value}"
            )

    def choose(self, ctx: DomainContext, forced: Backend | None = None) -> Backend:
        """Fix the backend for this run. Irreversible.

        A forced primary backend with no packages is an install error,
        never a silent fallback.
        """
        if self._state is not JoinState.UNCONFIGURED:
            raise OrchestrationError("Backend already selected for this run")

        if forced is None:
            backend = self.select_backend(ctx)
            if backend is Backend.FALLBACK_BROKER:
                self._warn(
                    f"{Backend.PRIMARY_AGENT.label} packages not found — "
                    f"skipping primary agent, using {Backend.FALLBACK_BROKER.label}"
                )
        else:
            backend = forced
            if forced is Backend.PRIMARY_AGENT and not self._adapter(forced).prerequisites_present():
                self._transition(JoinState.FAILED)
                raise InstallError(
                    f"{forced.label} requested but its packages are not present"
                )
            logger.info("Backend forced by operator: %s", forced.label)

        self._backend = backend
        self._transition(_SELECTED[backend])
        return backend

    def run(self, ctx: DomainContext, forced: Backend | None = None) -> JoinOutcome:
        """Select → install → join.

        Raises:
            InstallError / JoinError: fatal; state is FAILED.
        """
        backend = self.choose(ctx, forced)
        self.install(backend, ctx)
        return self.join(backend, ctx)
