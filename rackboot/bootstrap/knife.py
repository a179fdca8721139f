"""Chef bootstrap dispatch through the ``knife bootstrap`` command."""

import logging

from rackboot.bootstrap.shell import run_shell_cmd
from rackboot.config import RackbootConfig
from rackboot.provisioning.types import BootstrapSpec, Instance
from rackboot.redact import mask_argument

logger = logging.getLogger(__name__)

KNIFE = "knife"


class BootstrapError(RuntimeError):
    """knife bootstrap could not be run or exited non-zero."""


def build_bootstrap_spec(instance: Instance, hostname, run_list, config: RackbootConfig) -> BootstrapSpec:
    """Derive the bootstrap settings for a ready, reachable *instance*.

    The node name falls back to the server id, the SSH password to the one
    the provider generated for the server.
    """
    return BootstrapSpec(
        target_host=hostname,
        run_list=tuple(run_list),
        ssh_user=config.ssh_user or "root",
        ssh_credential=config.ssh_password or instance.credential_secret,
        node_name=config.node_name or instance.id,
        distro=config.distro,
        use_sudo=config.use_sudo,
        template_file=config.template_file,
        environment=config.environment,
        identity_file=config.identity_file,
        prerelease=config.prerelease,
    )


def _knife_bootstrap_cmd(target_host, spec: BootstrapSpec, knife=KNIFE):
    """Build the knife bootstrap command line for *spec*."""
    cmd = [
        knife,
        "bootstrap",
        target_host,
        "--ssh-user",
        spec.ssh_user,
        "--node-name",
        spec.node_name,
        "--distro",
        spec.distro,
    ]
    if spec.ssh_credential:
        cmd.extend(["--ssh-password", spec.ssh_credential])
    if spec.identity_file:
        cmd.extend(["--identity-file", spec.identity_file])
    if spec.run_list:
        cmd.extend(["--run-list", ",".join(spec.run_list)])
    if spec.template_file:
        cmd.extend(["--template-file", spec.template_file])
    if spec.environment:
        cmd.extend(["--environment", spec.environment])
    if spec.use_sudo:
        cmd.append("--sudo")
    if spec.prerelease:
        cmd.append("--prerelease")
    return cmd


class KnifeBootstrap:
    """Runs ``knife bootstrap`` once against a reachable host.

    The remote session (template rendering, package install, first
    chef-client run) is entirely knife's business; this only reports whether
    it succeeded.
    """

    def __init__(self, target_host, spec: BootstrapSpec, knife=KNIFE, dry_run=False):
        self.target_host = target_host
        self.spec = spec
        self.knife = knife
        self.dry_run = dry_run

    def command(self):
        return _knife_bootstrap_cmd(self.target_host, self.spec, knife=self.knife)

    async def run(self) -> None:
        cmd = self.command()
        logger.info(f"Bootstrapping {self.spec.node_name} on {self.target_host}...")
        rc, _, stderr = await run_shell_cmd(
            cmd,
            dry_run=self.dry_run,
            display=mask_argument(cmd, "--ssh-password"),
            log_output=True,
        )
        if rc != 0:
            detail = stderr.strip().splitlines()[-1] if stderr.strip() else f"exit code {rc}"
            raise BootstrapError(f"knife bootstrap failed for {self.target_host}: {detail}")
