"""
Domain models — Pydantic types for adjoin.

All models are re-exported here for convenient access:

    from adjoin.core.models import DomainContext, Backend, CheckResult, VerificationReport
"""

from adjoin.core.models.check import (
    CheckResult,
    CheckStatus,
    Verdict,
    VerificationReport,
    classify,
)
from adjoin.core.models.command import CommandResult
from adjoin.core.models.domain import (
    AdminCredential,
    Backend,
    BackendStatus,
    DomainContext,
    HostIdentity,
    JoinOutcome,
)
from adjoin.core.models.policy import (
    FallbackBrokerPolicy,
    JoinPolicy,
    PamPolicy,
    PrimaryAgentPolicy,
    SshPolicy,
    SudoPolicy,
    VerifyPolicy,
)

__all__ = [
    # domain.py
    "AdminCredential",
    "Backend",
    "BackendStatus",
    # check.py
    "CheckResult",
    "CheckStatus",
    # command.py
    "CommandResult",
    "DomainContext",
    # policy.py
    "FallbackBrokerPolicy",
    "HostIdentity",
    "JoinOutcome",
    "JoinPolicy",
    "PamPolicy",
    "PrimaryAgentPolicy",
    "SshPolicy",
    "SudoPolicy",
    "Verdict",
    "VerificationReport",
    "VerifyPolicy",
    "classify",
]
