"""Rackspace provider: create and inspect cloud servers via the REST API.

Only the calls the provisioning workflow needs are covered: identity
authentication, server create, server details, flavor and image names.
"""

import json
import logging

import httpx

from rackboot.config import RackbootConfig
from rackboot.provisioning.types import Instance, ProviderError, ProvisionRequest

logger = logging.getLogger(__name__)

COMPUTE_SERVICE_NAME = "cloudServersOpenStack"
READY_STATUS = "ACTIVE"
FAIL_STATUSES = {"ERROR", "DELETED"}
REQUEST_TIMEOUT = 60

DRY_RUN_SERVER_ID = "dry-run-id"
DRY_RUN_PUBLIC_ADDRESS = "192.0.2.10"
DRY_RUN_PRIVATE_ADDRESS = "10.0.0.10"


# ── Response parsing ──────────────────────────────────────────────


def _find_compute_endpoint(access, region):
    """Pick the compute publicURL for *region* out of an identity service catalog."""
    for service in access.get("serviceCatalog", []):
        if service.get("name") != COMPUTE_SERVICE_NAME:
            continue
        for endpoint in service.get("endpoints", []):
            if endpoint.get("region", "").upper() == region.upper():
                return endpoint["publicURL"].rstrip("/")
        available = ", ".join(sorted(e.get("region", "?") for e in service.get("endpoints", [])))
        raise ProviderError(f"No {COMPUTE_SERVICE_NAME} endpoint in region '{region}' (available: {available or 'none'})")
    raise ProviderError(f"Service catalog has no '{COMPUTE_SERVICE_NAME}' entry")


def _first_address(addresses, network):
    """Return the first address on *network*, preferring IPv4."""
    entries = addresses.get(network) or []
    for entry in entries:
        if isinstance(entry, dict) and entry.get("version", 4) == 4:
            return entry.get("addr", "")
    if entries:
        first = entries[0]
        return first.get("addr", "") if isinstance(first, dict) else str(first)
    return ""


def _apply_server_details(instance, server):
    """Copy authoritative server state from a /servers/{id} payload onto *instance*."""
    instance.name = server.get("name", instance.name)
    instance.host_id = server.get("hostId", "") or instance.host_id
    instance.status = server.get("status", "")
    instance.ready = instance.status == READY_STATUS

    # Addresses can show up before the server is usable; only expose them once it is.
    addresses = server.get("addresses", {}) or {}
    if instance.ready:
        instance.public_address = _first_address(addresses, "public") or server.get("accessIPv4", "")
        instance.private_address = _first_address(addresses, "private")
    return instance


class RackspaceClient:
    """Thin async client for Rackspace Cloud Servers.

    Authenticates lazily with username + API key on the first call and keeps
    the token and compute endpoint for the lifetime of the client.
    """

    def __init__(self, config: RackbootConfig, transport=None):
        self.config = config
        self._transport = transport
        self._token = None
        self._endpoint = None
        self._names = {}

    # ── API helpers ───────────────────────────────────────────────

    async def _request(self, method, url, payload=None, headers=None):
        """Send one request and return the decoded JSON body (or {} when empty)."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.request(method, url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        if not resp.content:
            return {}
        return resp.json()

    async def _authenticate(self):
        if self._token is not None:
            return
        payload = {
            "auth": {
                "RAX-KSKEY:apiKeyCredentials": {
                    "username": self.config.rackspace_api_username,
                    "apiKey": self.config.rackspace_api_key,
                }
            }
        }
        url = f"{self.config.rackspace_auth_url}/tokens"
        body = await self._request("POST", url, payload, headers={"Content-Type": "application/json"})
        try:
            access = body["access"]
            token = access["token"]["id"]
        except (KeyError, TypeError) as e:
            raise ProviderError(f"Unexpected identity response from {url}: missing {e}") from e
        self._endpoint = _find_compute_endpoint(access, self.config.rackspace_region)
        self._token = token
        logger.debug(f"Authenticated as {self.config.rackspace_api_username}; compute endpoint {self._endpoint}")

    async def _compute(self, method, path, payload=None):
        await self._authenticate()
        headers = {"X-Auth-Token": self._token, "Content-Type": "application/json", "Accept": "application/json"}
        return await self._request(method, f"{self._endpoint}{path}", payload, headers=headers)

    async def _lookup_name(self, kind, resource_id):
        """Resolve a flavor or image id to its display name (cached per client)."""
        if not resource_id:
            return ""
        key = (kind, resource_id)
        if key not in self._names:
            try:
                body = await self._compute("GET", f"/{kind}s/{resource_id}")
            except httpx.HTTPStatusError as e:
                logger.debug(f"Could not look up {kind} {resource_id} ({e.response.status_code}); showing its id")
                return resource_id
            self._names[key] = body.get(kind, {}).get("name", resource_id)
        return self._names[key]

    # ── ProviderClient interface ──────────────────────────────────

    async def create(self, request: ProvisionRequest) -> Instance:
        """Create a server and return its initial state, including the admin password."""
        payload = {
            "server": {
                "name": request.name,
                "imageRef": request.image_id,
                "flavorRef": request.flavor_id,
            }
        }

        if self.config.dry_run:
            logger.info(f"[dry-run] POST /servers in {self.config.rackspace_region}")
            logger.info(f"[dry-run] payload: {json.dumps(payload, indent=2)}")
            return Instance(
                id=DRY_RUN_SERVER_ID,
                name=request.name or "dry-run-server",
                host_id="dry-run-host",
                flavor_name=request.flavor_id,
                image_name=request.image_id,
                credential_secret="dry-run-password",
            )

        logger.debug(f"Creating server (name={request.name}, image={request.image_id}, flavor={request.flavor_id})")
        body = await self._compute("POST", "/servers", payload)
        created = body.get("server") or {}
        if not created.get("id"):
            raise ProviderError("No server id returned from create request")
        server_id = created["id"]
        logger.info(f"Created server {server_id}")

        instance = Instance(
            id=server_id,
            name=created.get("name", request.name or ""),
            credential_secret=created.get("adminPass", ""),
        )
        details = await self._get_server(instance.id)
        _apply_server_details(instance, details)
        instance.flavor_name = await self._lookup_name("flavor", (details.get("flavor") or {}).get("id", request.flavor_id))
        instance.image_name = await self._lookup_name("image", (details.get("image") or {}).get("id", request.image_id))
        return instance

    async def refresh(self, instance: Instance) -> Instance:
        """Re-read authoritative state for *instance* in place.

        Raises ProviderError when the server landed in a failure status.
        """
        if self.config.dry_run:
            instance.status = READY_STATUS
            instance.ready = True
            instance.public_address = DRY_RUN_PUBLIC_ADDRESS
            instance.private_address = DRY_RUN_PRIVATE_ADDRESS
            return instance

        server = await self._get_server(instance.id)
        _apply_server_details(instance, server)
        if instance.status in FAIL_STATUSES:
            raise ProviderError(f"Server {instance.id} reached fail status '{instance.status}'")
        return instance

    async def _get_server(self, server_id):
        body = await self._compute("GET", f"/servers/{server_id}")
        server = body.get("server")
        if server is None:
            raise ProviderError(f"Server {server_id} not found")
        return server
