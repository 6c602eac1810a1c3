"""
Configuration loader — reads network-config.env and adjoin.yml.

The environment file is the lab's shell-sourceable ``KEY=value`` file
and is mandatory: without it there is no domain to join.  The YAML
policy is optional and only overrides site defaults.
"""

from __future__ import annotations

import logging
import os
import shlex
import socket
from collections.abc import Mapping
from pathlib import Path

import yaml

from adjoin.core.errors import PreconditionError
from adjoin.core.models.domain import AdminCredential, DomainContext, HostIdentity
from adjoin.core.models.policy import JoinPolicy

logger = logging.getLogger(__name__)

ENV_CONFIG_FILE = "network-config.env"
POLICY_FILE = "adjoin.yml"
SYSTEM_CONFIG_DIR = Path("/etc/adjoin")

REQUIRED_KEYS = ("DOMAIN_NAME", "DC_IP", "DC_FQDN")


class ConfigError(PreconditionError):
    """Raised when configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None, name: str = ENV_CONFIG_FILE) -> Path | None:
    """Search for *name* starting from the given directory, walking up.

    Each directory is checked for ``<name>`` and ``config/<name>``;
    ``/etc/adjoin/<name>`` is the last resort.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        for candidate in (current / name, current / "config" / name):
            if candidate.is_file():
                return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    system = SYSTEM_CONFIG_DIR / name
    if system.is_file():
        return system
    return None


def resolve_config_path(path: Path | None = None) -> Path:
    """Apply the lookup order: explicit path, $ADJOIN_CONFIG, search.

    Raises:
        ConfigError: nothing found, or an explicit path does not exist.
    """
    if path is None and os.environ.get("ADJOIN_CONFIG"):
        path = Path(os.environ["ADJOIN_CONFIG"])
    if path is None:
        path = find_config_file()
    if path is None:
        raise ConfigError(
            f"No {ENV_CONFIG_FILE} found. "
            "Create one from config/network-config.env.example, or specify --config."
        )
    if not path.is_file():
        raise ConfigError(f"Configuration file not found at {path}")
    return path


def parse_env_file(text: str) -> dict[str, str]:
    """Parse shell-style ``KEY=value`` lines.

    Handles ``export`` prefixes, quoting and trailing comments the way
    ``source`` would for the simple assignments these files contain.
    Variable expansion is not performed.
    """
    values: dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, rest = line.partition("=")
        key = key.strip()
        if not sep or not key.isidentifier():
            logger.warning("Ignoring malformed line %d in env file: %r", lineno, raw)
            continue
        try:
            tokens = shlex.split(_strip_comment(rest), comments=False)
        except ValueError as e:
            raise ConfigError(f"Line {lineno}: cannot parse value for {key}: {e}") from e
        values[key] = " ".join(tokens)
    return values


def _strip_comment(value: str) -> str:
    """Drop a trailing ``# comment``.

    As in the shell, ``#`` starts a comment only at the beginning of a
    word and outside quotes: ``pa#ss`` keeps its ``#``.
    """
    quote = ""
    escaped = False
    for idx, ch in enumerate(value):
        if escaped:
            escaped = False
        elif quote:
            if ch == quote:
                quote = ""
            elif ch == "\\" and quote == '"':
                escaped = True
        elif ch == "\\":
            escaped = True
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "#" and (idx == 0 or value[idx - 1].isspace()):
            return value[:idx]
    return value


def _read_secret_file(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigError(f"Cannot read DOMAIN_ADMIN_PASS_FILE {path}: {e}") from e


def _host_identity(values: Mapping[str, str]) -> HostIdentity:
    prefix = values.get("TARGET_HOST", "").strip()
    if prefix:
        ip = values.get(f"{prefix}_IP", "")
        fqdn = values.get(f"{prefix}_FQDN", "")
        hostname = values.get(f"{prefix}_HOSTNAME", "")
    else:
        ip = values.get("HOST_IP", "")
        fqdn = values.get("HOST_FQDN", "")
        hostname = values.get("HOST_NAME", "")

    if not fqdn:
        fqdn = socket.getfqdn()
    if not hostname:
        hostname = fqdn.split(".")[0]
    return HostIdentity(ip=ip, fqdn=fqdn, hostname=hostname)


def context_from_values(
    values: Mapping[str, str],
    environ: Mapping[str, str] | None = None,
) -> DomainContext:
    """Build a DomainContext from parsed env-file values.

    The administrator password may also come from the process
    environment, which takes precedence over the file.

    Raises:
        ConfigError: required keys missing or values invalid.
    """
    environ = os.environ if environ is None else environ
    missing = [k for k in REQUIRED_KEYS if not values.get(k)]
    if missing:
        raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    password: str | None = environ.get("DOMAIN_ADMIN_PASS") or values.get("DOMAIN_ADMIN_PASS")
    pass_file = environ.get("DOMAIN_ADMIN_PASS_FILE") or values.get("DOMAIN_ADMIN_PASS_FILE")
    if not password and pass_file:
        password = _read_secret_file(pass_file)

    try:
        return DomainContext(
            domain_name=values["DOMAIN_NAME"],
            realm=values.get("DOMAIN_REALM", ""),
            netbios=values.get("DOMAIN_NETBIOS", ""),
            dc_ip=values["DC_IP"],
            dc_fqdn=values["DC_FQDN"],
            dc_hostname=values.get("DC_HOSTNAME", ""),
            admin=AdminCredential(
                user=values.get("DOMAIN_ADMIN_USER") or "Administrator",
                password=password or None,
            ),
            ou=values.get("DOMAIN_OU", ""),
            host=_host_identity(values),
        )
    except Exception as e:
        raise ConfigError(f"Invalid domain configuration: {e}") from e


def load_context(path: Path | None = None) -> DomainContext:
    """Load and validate the domain configuration.

    Args:
        path: Explicit env file path. If None, uses the lookup order.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    path = resolve_config_path(path)
    logger.debug("Loading domain config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    ctx = context_from_values(parse_env_file(raw))
    logger.info("Loaded domain '%s' (realm %s, DC %s)", ctx.domain_name, ctx.realm, ctx.dc_fqdn)
    return ctx


def load_policy(path: Path | None = None, search_dir: Path | None = None) -> JoinPolicy:
    """Load the optional YAML site policy.

    Args:
        path: Explicit adjoin.yml path; must exist when given.
        search_dir: Where to look when no path is given (next to the
            env file, normally). A missing file yields defaults.

    Raises:
        ConfigError: explicit path missing, or invalid YAML/schema.
    """
    if path is None:
        if os.environ.get("ADJOIN_POLICY"):
            path = Path(os.environ["ADJOIN_POLICY"])
        elif search_dir is not None and (search_dir / POLICY_FILE).is_file():
            path = search_dir / POLICY_FILE
        elif (SYSTEM_CONFIG_DIR / POLICY_FILE).is_file():
            path = SYSTEM_CONFIG_DIR / POLICY_FILE
        else:
            logger.debug("No %s found — using default policy", POLICY_FILE)
            return JoinPolicy()

    if not path.is_file():
        raise ConfigError(f"Policy file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if data is None:
        return JoinPolicy()
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "policy" key or be flat
    policy_data = data.get("policy", data)

    try:
        policy = JoinPolicy.model_validate(policy_data)
    except Exception as e:
        raise ConfigError(f"Invalid policy configuration: {e}") from e

    logger.info("Loaded policy from %s", path)
    return policy
