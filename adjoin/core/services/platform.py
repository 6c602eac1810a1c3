"""
Platform preconditions — privilege, distribution family, architecture.

Checked before any state mutation.  Anything unsupported raises
PreconditionError and the run exits non-zero without touching the host.
"""

from __future__ import annotations

import logging
import os
import platform as _platform
from pathlib import Path

from pydantic import BaseModel

from adjoin.core.errors import PreconditionError

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")

_DEBIAN_IDS = {"ubuntu", "debian"}
_RHEL_IDS = {"rhel", "centos", "fedora", "rocky", "almalinux"}
SUPPORTED_ARCHES = {"x86_64", "aarch64"}


class PlatformInfo(BaseModel):
    """What kind of host we are on."""

    distro: str
    version: str = ""
    family: str  # debian | rhel
    arch: str = "x86_64"

    @property
    def package_suffix(self) -> str:
        return ".deb" if self.family == "debian" else ".rpm"

    def install_command(self, packages: list[str]) -> list[str]:
        """Package-manager command installing *packages* from repositories."""
        if self.family == "debian":
            return ["apt-get", "install", "-y", *packages]
        return ["yum", "install", "-y", *packages]

    def local_install_command(self, files: list[str]) -> list[str]:
        """Command installing local package files."""
        if self.family == "debian":
            return ["dpkg", "-i", *files]
        return ["yum", "localinstall", "-y", *files]

    @property
    def package_env(self) -> dict[str, str]:
        if self.family == "debian":
            return {"DEBIAN_FRONTEND": "noninteractive"}
        return {}


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release ``KEY=value`` lines."""
    info: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, val = line.partition("=")
        info[key] = val.strip().strip('"').strip("'")
    return info


def detect_platform(os_release: Path | None = None, machine: str | None = None) -> PlatformInfo:
    """Detect distribution family and architecture.

    Raises:
        PreconditionError: os-release missing, or an unsupported
            distribution or architecture.
    """
    path = os_release or OS_RELEASE
    try:
        info = parse_os_release(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PreconditionError(f"Cannot detect Linux distribution: {e}") from e

    distro = info.get("ID", "").lower()
    like = set(info.get("ID_LIKE", "").lower().split())

    if distro in _DEBIAN_IDS or like & _DEBIAN_IDS:
        family = "debian"
    elif distro in _RHEL_IDS or like & _RHEL_IDS:
        family = "rhel"
    else:
        raise PreconditionError(f"Unsupported distribution: {distro or 'unknown'}")

    arch = machine or _platform.machine()
    if arch not in SUPPORTED_ARCHES:
        raise PreconditionError(f"Unsupported architecture: {arch}")

    detected = PlatformInfo(
        distro=distro,
        version=info.get("VERSION_ID", ""),
        family=family,
        arch=arch,
    )
    logger.info("Detected: %s %s (%s)", detected.distro, detected.version, detected.arch)
    return detected


def require_root() -> None:
    """Raise PreconditionError unless running as root."""
    if os.geteuid() != 0:
        raise PreconditionError("This command must be run as root")
