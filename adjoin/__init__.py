"""adjoin — Active Directory join orchestration and verification."""

__version__ = "0.1.0"
