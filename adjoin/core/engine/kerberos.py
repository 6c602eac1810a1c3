"""
krb5.conf rendering — the Kerberos client config both backends join with.

Written after install and before join, naming the domain controller
from network-config.env as the realm's KDC.
"""

from __future__ import annotations

import logging
from pathlib import Path

from adjoin.adapters.shell.filesystem import write_if_changed
from adjoin.core.errors import JoinError
from adjoin.core.models.domain import DomainContext
from adjoin.core.models.policy import JoinPolicy

logger = logging.getLogger(__name__)


def render_krb5_conf(ctx: DomainContext, policy: JoinPolicy) -> str:
    """krb5.conf content for *ctx*."""
    krb = policy.kerberos
    realm = ctx.realm
    domain = ctx.domain_name
    return f"""\
[libdefaults]
    default_realm = {realm}
    dns_lookup_realm = false
    dns_lookup_kdc = true
    ticket_lifetime = {krb.ticket_lifetime}
    renew_lifetime = {krb.renew_lifetime}
    forwardable = true
    rdns = false

[realms]
    {realm} = {{
        kdc = {ctx.dc_fqdn}
        admin_server = {ctx.dc_fqdn}
        default_domain = {domain}
    }}

[domain_realm]
    .{domain} = {realm}
    {domain} = {realm}
"""


def write_krb5_conf(ctx: DomainContext, policy: JoinPolicy) -> bool:
    """Write krb5.conf (mode 0644). Returns True if it changed.

    Raises:
        JoinError: the file could not be read or written.
    """
    path = Path(policy.kerberos.config_path)
    try:
        changed = write_if_changed(path, render_krb5_conf(ctx, policy), mode=0o644)
    except (OSError, UnicodeError) as e:
        raise JoinError(f"Cannot write {path}: {e}") from e
    if changed:
        logger.info("Kerberos configured for realm %s in %s", ctx.realm, path)
    return changed
