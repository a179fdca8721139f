"""TCP-level sshd readiness probing."""

import asyncio
import inspect
import logging
import time

from rackboot.logging_setup import progress_dot
from rackboot.provisioning.types import ProvisioningCancelled, ProvisioningTimeout

logger = logging.getLogger(__name__)

SSH_PORT = 22
CONNECT_TIMEOUT = 5
REFUSED_BACKOFF = 10

CONNECTED = "connected"
TIMED_OUT = "timeout"
REFUSED = "refused"


async def tcp_test_ssh(hostname, port=SSH_PORT, connect_timeout=CONNECT_TIMEOUT, connect=asyncio.open_connection):
    """Make one connection attempt against sshd.

    Returns:
        CONNECTED, TIMED_OUT or REFUSED. Any other connection error is raised.
    """
    writer = None
    try:
        reader, writer = await asyncio.wait_for(connect(hostname, port), timeout=connect_timeout)
        try:
            banner = await asyncio.wait_for(reader.readline(), timeout=connect_timeout)
        except TimeoutError:
            banner = b""
        if banner:
            logger.debug(f"sshd accepting connections on {hostname}, banner is {banner.decode(errors='replace').strip()}")
        else:
            logger.debug(f"sshd accepting connections on {hostname}, no banner")
        return CONNECTED
    except TimeoutError:
        return TIMED_OUT
    except ConnectionRefusedError:
        return REFUSED
    finally:
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug(f"Error closing connection to {hostname}: {e!r}")


async def probe_until_reachable(
    hostname,
    port=SSH_PORT,
    connect_timeout=CONNECT_TIMEOUT,
    on_success=None,
    backoff=REFUSED_BACKOFF,
    timeout=None,
    cancel_event: asyncio.Event | None = None,
    connect=asyncio.open_connection,
    sleep=asyncio.sleep,
    on_attempt=progress_dot,
):
    """Block until *hostname*:*port* accepts TCP connections.

    A connect timeout is retried at once (the server is usually still
    booting); a refused connection is retried after *backoff* seconds.
    Everything else propagates. *on_success* is called exactly once, and
    awaited if it returns an awaitable.

    Args:
        timeout: optional ceiling in seconds; None probes indefinitely.
        cancel_event: checked between attempts; raises ProvisioningCancelled when set.
    """
    started = time.monotonic()
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise ProvisioningCancelled(f"Cancelled while waiting for sshd on {hostname}:{port}")

        outcome = await tcp_test_ssh(hostname, port, connect_timeout, connect=connect)
        if outcome == CONNECTED:
            if on_success is not None:
                result = on_success()
                if inspect.isawaitable(result):
                    await result
            return

        on_attempt()
        if timeout is not None and time.monotonic() - started >= timeout:
            raise ProvisioningTimeout(f"Timeout after {timeout}s waiting for sshd on {hostname}:{port}")
        if outcome == REFUSED:
            await sleep(backoff)
