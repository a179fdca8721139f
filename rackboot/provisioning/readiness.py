"""Wait for the provider to report a freshly created server as usable."""

import asyncio
import logging
import time

from rackboot.logging_setup import progress_dot
from rackboot.provisioning.types import Instance, ProvisioningCancelled, ProvisioningTimeout

logger = logging.getLogger(__name__)

POLL_INTERVAL = 5


async def await_ready(
    client,
    instance: Instance,
    interval=POLL_INTERVAL,
    timeout=None,
    cancel_event: asyncio.Event | None = None,
    sleep=asyncio.sleep,
    on_attempt=progress_dot,
) -> Instance:
    """Refresh *instance* until the provider reports it ready.

    Every iteration re-reads provider state through ``client.refresh()`` and
    emits one progress unit via *on_attempt*. Errors raised by the refresh
    call are not retried here: "cannot tell" is different from "not yet".

    Args:
        interval: seconds to sleep between polls.
        timeout: optional ceiling in seconds; None waits indefinitely.
        cancel_event: checked between polls; raises ProvisioningCancelled when set.

    Returns:
        The refreshed instance, once ``instance.ready`` is True.
    """
    started = time.monotonic()
    attempts = 0
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise ProvisioningCancelled(f"Cancelled while waiting for server {instance.id} to become ready")

        instance = await client.refresh(instance)
        attempts += 1
        on_attempt()
        if instance.ready:
            logger.debug(f"Server {instance.id} ready after {attempts} poll(s)")
            return instance

        if timeout is not None and time.monotonic() - started >= timeout:
            raise ProvisioningTimeout(
                f"Timeout after {timeout}s waiting for server {instance.id} to become ready (last status: '{instance.status}')"
            )
        await sleep(interval)
