"""Public hostname resolution for a provisioned server."""

import logging
import socket

from rackboot.provisioning.types import Instance, ResolvedEndpoint

logger = logging.getLogger(__name__)

FALLBACK_DOMAIN = "static.cloud-ips.com"


def fallback_hostname(address):
    """Synthesize the provider's static hostname: 10.0.0.5 -> 10-0-0-5.static.cloud-ips.com."""
    return f"{address.replace('.', '-')}.{FALLBACK_DOMAIN}"


def resolve_endpoint(instance: Instance, lookup=socket.gethostbyaddr) -> ResolvedEndpoint:
    """Return the public hostname of *instance*, computing it at most once.

    Reverse DNS is tried first. Any lookup failure, whatever its kind, falls
    back to the synthesized static hostname so provisioning never stalls on
    flaky DNS. The result is stored on ``instance.resolved_endpoint`` and
    reused on every later call, even if the address changes afterwards.
    """
    if instance.resolved_endpoint is not None:
        return instance.resolved_endpoint

    address = instance.public_address
    try:
        hostname = lookup(address)[0]
    except Exception as e:
        hostname = fallback_hostname(address)
        logger.debug(f"Reverse lookup of {address} failed ({e!r}); using {hostname}")

    instance.resolved_endpoint = ResolvedEndpoint(hostname=hostname)
    return instance.resolved_endpoint
