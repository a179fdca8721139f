"""'server create' CLI handler: provision a server and bootstrap it with Chef."""

import asyncio
import logging
import signal
import sys

import httpx
import yaml

from rackboot.bootstrap.knife import BootstrapError
from rackboot.config import build_config, load_config_file, validate_config
from rackboot.provisioning.rackspace import RackspaceClient
from rackboot.provisioning.types import ProviderError, ProvisioningCancelled, ProvisioningTimeout
from rackboot.workflow import PollSettings, provision_server

logger = logging.getLogger(__name__)

# CLI dests that map one-to-one onto RackbootConfig settings
_SETTING_DESTS = [
    "flavor",
    "image",
    "server_name",
    "node_name",
    "ssh_user",
    "ssh_password",
    "identity_file",
    "rackspace_api_key",
    "rackspace_api_username",
    "rackspace_region",
    "rackspace_auth_url",
    "distro",
    "template_file",
    "environment",
    "use_sudo",
    "prerelease",
    "dry_run",
]

_FATAL_ERRORS = (
    httpx.HTTPError,
    ProviderError,
    ProvisioningTimeout,
    ProvisioningCancelled,
    BootstrapError,
    OSError,
)


def parse_run_list(items):
    """Flatten positional run list items, splitting comma-separated entries."""
    run_list = []
    for item in items:
        run_list.extend(part.strip() for part in item.split(",") if part.strip())
    return run_list


def _cli_settings(args):
    return {dest: getattr(args, dest, None) for dest in _SETTING_DESTS}


# ── CLI handlers ───────────────────────────────────────────────────


def handle_create(args):
    """CLI handler for 'server create'."""
    try:
        config = build_config(_cli_settings(args), file_settings=load_config_file(args.config))
        validate_config(config)
    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    settings = PollSettings(ready_timeout=args.ready_timeout, ssh_timeout=args.ssh_timeout)
    run_list = parse_run_list(args.run_list)

    try:
        asyncio.run(_handle_create(config, run_list, settings))
    except _FATAL_ERRORS as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


async def _handle_create(config, run_list, settings):
    """Run the workflow with SIGTERM wired up.

    While a wait loop runs, SIGTERM sets the cancel event so the loop stops at
    its next attempt boundary. Once both loops are over it cancels the task.
    """
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    cancel_event = asyncio.Event()
    waiting = True

    def _on_sigterm():
        cancel_event.set()
        if not waiting:
            task.cancel()

    def _waits_done():
        nonlocal waiting
        waiting = False
        if cancel_event.is_set():
            task.cancel()

    loop.add_signal_handler(signal.SIGTERM, _on_sigterm)
    try:
        client = RackspaceClient(config)
        await provision_server(
            client, config, run_list, settings=settings, cancel_event=cancel_event, on_waits_done=_waits_done
        )
    except asyncio.CancelledError:
        if not cancel_event.is_set():
            raise
        raise ProvisioningCancelled("Terminated by SIGTERM") from None
    finally:
        loop.remove_signal_handler(signal.SIGTERM)


# ── Registration ───────────────────────────────────────────────────


def register_create_action(subparsers):
    """Register 'server create [RUN LIST...] (options)'."""
    parser = subparsers.add_parser("create", help="Create a server and bootstrap it with Chef")
    parser.add_argument("run_list", nargs="*", help="Roles/recipes for the node's run list (e.g. 'role[web]')")
    parser.add_argument("-f", "--flavor", default=None, help="The flavor of server (default: 1)")
    parser.add_argument("-i", "--image", default=None, help="The image of the server")
    parser.add_argument("-S", "--server-name", default=None, help="The server name")
    parser.add_argument("-N", "--node-name", default=None, help="The Chef node name for your new node (default: server id)")
    parser.add_argument("-x", "--ssh-user", default=None, help="The ssh username (default: root)")
    parser.add_argument("-P", "--ssh-password", default=None, help="The ssh password (default: the server's admin password)")
    parser.add_argument("--identity-file", default=None, help="SSH identity file used for the bootstrap")
    parser.add_argument(
        "-K", "--rackspace-api-key", default=None, help="Your Rackspace API key (fallback: RACKSPACE_API_KEY env var)"
    )
    parser.add_argument(
        "-A", "--rackspace-api-username", default=None, help="Your Rackspace API username (fallback: RACKSPACE_USERNAME env var)"
    )
    parser.add_argument("--rackspace-region", default=None, help="Rackspace region (default: DFW)")
    parser.add_argument("--rackspace-auth-url", default=None, help="Rackspace identity endpoint")
    parser.add_argument("-d", "--distro", default=None, help="Bootstrap a distro using a template (default: ubuntu10.04-gems)")
    parser.add_argument("--sudo", dest="use_sudo", action="store_true", default=None, help="Execute the bootstrap via sudo")
    parser.add_argument("--template-file", default=None, help="Full path to location of template to use")
    parser.add_argument("-E", "--environment", default=None, help="The Chef environment for the new node")
    parser.add_argument("--prerelease", action="store_true", default=None, help="Install the pre-release chef gems")
    parser.add_argument("--config", default=None, help="YAML config file (default: ~/.rackboot.yaml)")
    parser.add_argument("--ready-timeout", type=float, default=None, help="Give up waiting for the server after N seconds")
    parser.add_argument("--ssh-timeout", type=float, default=None, help="Give up waiting for sshd after N seconds")
    parser.add_argument("--dry-run", action="store_true", default=None, help="Print requests without executing")
    parser.set_defaults(func=handle_create)
