"""Shared data types and errors for the provisioning workflow."""

from dataclasses import dataclass, field
from typing import Protocol


class ProviderError(RuntimeError):
    """The provider reported a failed server or returned an unusable response."""


class ProvisioningTimeout(TimeoutError):
    """An optional wait ceiling elapsed before the condition was met."""


class ProvisioningCancelled(RuntimeError):
    """The cancellation event was set between poll attempts."""


@dataclass(frozen=True)
class ProvisionRequest:
    """What to create. Immutable once submitted."""

    name: str
    image_id: str
    flavor_id: str


@dataclass(frozen=True)
class ResolvedEndpoint:
    """Stable hostname for a server's public address."""

    hostname: str


@dataclass
class Instance:
    """Provider-side server state, refreshed in place by the provider client.

    public_address is empty until the provider reports the server ready.
    resolved_endpoint is populated once by resolve_endpoint() and never
    recomputed.
    """

    id: str
    name: str
    host_id: str = ""
    flavor_name: str = ""
    image_name: str = ""
    public_address: str = ""
    private_address: str = ""
    credential_secret: str = ""
    ready: bool = False
    status: str = ""
    resolved_endpoint: ResolvedEndpoint | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class BootstrapSpec:
    """Everything the bootstrap tool needs to configure the new node."""

    target_host: str
    ssh_credential: str
    node_name: str
    run_list: tuple[str, ...] = ()
    ssh_user: str = "root"
    distro: str = "ubuntu10.04-gems"
    use_sudo: bool = False
    template_file: str | None = None
    environment: str | None = None
    identity_file: str | None = None
    prerelease: bool = False


class ProviderClient(Protocol):
    """Narrow interface the workflow needs from a cloud provider."""

    async def create(self, request: ProvisionRequest) -> Instance: ...

    async def refresh(self, instance: Instance) -> Instance: ...


class BootstrapDispatcher(Protocol):
    """Runs the configuration-management bootstrap against a reachable host."""

    async def run(self) -> None: ...
