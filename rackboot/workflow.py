"""Server provisioning workflow: create, wait, resolve, probe, bootstrap.

Stages run strictly in sequence; any fatal error aborts the run and leaves
the server as the provider created it. Nothing is torn down automatically.
"""

import asyncio
import logging
import socket
from dataclasses import dataclass

from rackboot.bootstrap.knife import KnifeBootstrap, build_bootstrap_spec
from rackboot.config import RackbootConfig
from rackboot.provisioning.dns import resolve_endpoint
from rackboot.provisioning.readiness import POLL_INTERVAL, await_ready
from rackboot.provisioning.ssh import CONNECT_TIMEOUT, REFUSED_BACKOFF, SSH_PORT, probe_until_reachable
from rackboot.provisioning.types import BootstrapSpec, Instance, ProvisionRequest

logger = logging.getLogger(__name__)

# Pause after sshd first answers, before handing the host to the bootstrap.
SUCCESS_DELAY = 10


@dataclass(frozen=True)
class PollSettings:
    """Pacing and optional ceilings for the two wait loops."""

    poll_interval: float = POLL_INTERVAL
    connect_timeout: float = CONNECT_TIMEOUT
    refused_backoff: float = REFUSED_BACKOFF
    success_delay: float = SUCCESS_DELAY
    ssh_port: int = SSH_PORT
    ready_timeout: float | None = None
    ssh_timeout: float | None = None


@dataclass
class ProvisionResult:
    instance: Instance
    spec: BootstrapSpec


def _offline_lookup(address):
    raise OSError(f"dry run: no reverse lookup for {address}")


def _log_server_report(instance: Instance, hostname=None, run_list=None):
    logger.info(f"Instance ID: {instance.id}")
    logger.info(f"Host ID: {instance.host_id}")
    logger.info(f"Name: {instance.name}")
    logger.info(f"Flavor: {instance.flavor_name}")
    logger.info(f"Image: {instance.image_name}")
    if hostname is not None:
        logger.info(f"Public DNS Name: {hostname}")
        logger.info(f"Public IP Address: {instance.public_address}")
        logger.info(f"Private IP Address: {instance.private_address}")
        logger.info(f"Password: {instance.credential_secret}")
    if run_list is not None:
        logger.info(f"Run List: {', '.join(run_list)}")


async def provision_server(
    client,
    config: RackbootConfig,
    run_list,
    settings: PollSettings | None = None,
    dispatcher_factory=KnifeBootstrap,
    lookup=socket.gethostbyaddr,
    connect=asyncio.open_connection,
    sleep=asyncio.sleep,
    cancel_event: asyncio.Event | None = None,
    on_waits_done=None,
) -> ProvisionResult:
    """Provision one server end to end and bootstrap it.

    Args:
        client: a ProviderClient (create/refresh).
        run_list: ordered roles/recipes handed to the bootstrap.
        dispatcher_factory: called as ``factory(target_host, spec, dry_run=...)``
            and must return an object with an async ``run()``.
        lookup, connect, sleep: injectable DNS, TCP connect and sleep functions.
        cancel_event: checked between poll attempts in both wait loops.
        on_waits_done: called once both wait loops are over, before the
            bootstrap starts; cancel_event is not consulted after that.

    Returns:
        ProvisionResult with the final instance state and the bootstrap spec used.
    """
    settings = settings or PollSettings()
    run_list = list(run_list)

    request = ProvisionRequest(name=config.server_name or "", image_id=config.image or "", flavor_id=config.flavor)
    instance = await client.create(request)

    _log_server_report(instance)
    try:
        return await _provision_created(
            client, instance, config, run_list, settings, dispatcher_factory, lookup, connect, sleep, cancel_event, on_waits_done
        )
    except BaseException:
        logger.info("")
        logger.error(f"Server {instance.id} was left as created; delete it manually if it is not needed.")
        raise


async def _provision_created(
    client, instance, config, run_list, settings, dispatcher_factory, lookup, connect, sleep, cancel_event, on_waits_done
):
    logger.info("")
    logger.info("Waiting for server")
    instance = await await_ready(
        client,
        instance,
        interval=settings.poll_interval,
        timeout=settings.ready_timeout,
        cancel_event=cancel_event,
        sleep=sleep,
    )
    logger.info("")

    endpoint = await asyncio.to_thread(resolve_endpoint, instance, _offline_lookup if config.dry_run else lookup)
    hostname = endpoint.hostname

    logger.info(f"Public DNS Name: {hostname}")
    logger.info(f"Public IP Address: {instance.public_address}")
    logger.info(f"Private IP Address: {instance.private_address}")
    logger.info(f"Password: {instance.credential_secret}")
    logger.info("")
    logger.info("Waiting for sshd")

    async def _sshd_ready():
        await sleep(settings.success_delay)
        logger.info("done")

    if config.dry_run:
        logger.info(f"[dry-run] Probe {instance.public_address}:{settings.ssh_port} until sshd answers")
    else:
        await probe_until_reachable(
            instance.public_address,
            port=settings.ssh_port,
            connect_timeout=settings.connect_timeout,
            on_success=_sshd_ready,
            backoff=settings.refused_backoff,
            timeout=settings.ssh_timeout,
            cancel_event=cancel_event,
            connect=connect,
            sleep=sleep,
        )
    if on_waits_done is not None:
        on_waits_done()

    spec = build_bootstrap_spec(instance, hostname, run_list, config)
    dispatcher = dispatcher_factory(hostname, spec, dry_run=config.dry_run)
    await dispatcher.run()

    logger.info("")
    _log_server_report(instance, hostname=hostname, run_list=run_list)
    return ProvisionResult(instance=instance, spec=spec)
