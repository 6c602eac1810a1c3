"""
Fatal error taxonomy.

Everything raised here aborts a join run.  Verification never raises
these: probe failures are recorded as CheckResults instead.

    AdjoinError
    ├── PreconditionError   (before any state mutation)
    │   └── ConfigError     (defined in core.config.loader)
    ├── InstallError        (backend install step)
    ├── JoinError           (backend join step)
    └── ConfigureError      (post-join configuration)
"""

from __future__ import annotations


class AdjoinError(Exception):
    """Base class for all fatal adjoin errors."""


class PreconditionError(AdjoinError):
    """The host cannot be touched: wrong privilege, platform, or a held lock."""


class InstallError(AdjoinError):
    """A backend's packages could not be installed."""


class JoinError(AdjoinError):
    """A backend's domain-join primitive reported failure."""


class ConfigureError(AdjoinError):
    """A post-join configuration file could not be applied safely."""
