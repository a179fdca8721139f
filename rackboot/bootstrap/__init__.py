"""Bootstrap dispatch: hand a reachable server to knife bootstrap."""

from rackboot.bootstrap.knife import BootstrapError, KnifeBootstrap, build_bootstrap_spec
from rackboot.bootstrap.shell import run_shell_cmd

__all__ = [
    "BootstrapError",
    "KnifeBootstrap",
    "build_bootstrap_spec",
    "run_shell_cmd",
]
