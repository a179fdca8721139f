"""Server provisioning: provider client, wait loops, hostname resolution."""

from rackboot.provisioning.dns import fallback_hostname, resolve_endpoint
from rackboot.provisioning.rackspace import RackspaceClient
from rackboot.provisioning.readiness import await_ready
from rackboot.provisioning.ssh import probe_until_reachable, tcp_test_ssh
from rackboot.provisioning.types import (
    BootstrapSpec,
    Instance,
    ProviderError,
    ProvisioningCancelled,
    ProvisioningTimeout,
    ProvisionRequest,
    ResolvedEndpoint,
)

__all__ = [
    "BootstrapSpec",
    "Instance",
    "ProvisionRequest",
    "ResolvedEndpoint",
    "ProviderError",
    "ProvisioningTimeout",
    "ProvisioningCancelled",
    "RackspaceClient",
    "await_ready",
    "resolve_endpoint",
    "fallback_hostname",
    "tcp_test_ssh",
    "probe_until_reachable",
]
