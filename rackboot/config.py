"""Configuration loading: CLI flags, environment variables, YAML file, defaults.

Settings are resolved once into an immutable RackbootConfig which is then
passed explicitly to the provider client and the bootstrap builder.
Precedence, highest first: CLI flag, environment variable, the ``knife:``
section of the YAML config file, built-in default.
"""

import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.rackboot.yaml"
DEFAULT_AUTH_URL = "https://identity.api.rackspacecloud.com/v2.0"
DEFAULT_REGION = "DFW"
DEFAULT_FLAVOR = "1"
DEFAULT_DISTRO = "ubuntu10.04-gems"
DEFAULT_SSH_USER = "root"

# setting name -> environment variable
ENV_VARS = {
    "rackspace_api_key": "RACKSPACE_API_KEY",
    "rackspace_api_username": "RACKSPACE_USERNAME",
    "rackspace_region": "RACKSPACE_REGION",
}


@dataclass(frozen=True)
class RackbootConfig:
    """Fully resolved settings for one provisioning run."""

    rackspace_api_username: str | None = None
    rackspace_api_key: str | None = None
    rackspace_region: str = DEFAULT_REGION
    rackspace_auth_url: str = DEFAULT_AUTH_URL
    flavor: str = DEFAULT_FLAVOR
    image: str | None = None
    server_name: str | None = None
    node_name: str | None = None
    ssh_user: str = DEFAULT_SSH_USER
    ssh_password: str | None = None
    identity_file: str | None = None
    distro: str = DEFAULT_DISTRO
    template_file: str | None = None
    environment: str | None = None
    use_sudo: bool = False
    prerelease: bool = False
    dry_run: bool = False


def resolve_setting(*candidates, default=None):
    """Return the first candidate that is not None, else *default*.

    Candidates are given in precedence order. Empty strings count as set.
    """
    for value in candidates:
        if value is not None:
            return value
    return default


def load_config_file(path=None) -> dict:
    """Load the ``knife:`` section of a YAML config file.

    A missing file at the default location yields an empty dict; a missing
    file that was asked for explicitly raises FileNotFoundError.
    """
    explicit = path is not None
    config_path = os.path.expanduser(path or DEFAULT_CONFIG_PATH)
    if not os.path.isfile(config_path):
        if explicit:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return {}

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    section = data.get("knife", {}) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'knife' section in {config_path} must be a mapping")
    logger.debug(f"Loaded {len(section)} setting(s) from {config_path}")
    return section


def _env_settings(env) -> dict:
    return {key: env[var] for key, var in ENV_VARS.items() if env.get(var)}


def _as_str(value):
    return None if value is None else str(value)


def build_config(cli_settings: dict, env=None, file_settings=None) -> RackbootConfig:
    """Resolve every setting once, in precedence order, into a RackbootConfig.

    Args:
        cli_settings: values from the command line; None means "not given".
        env: environment mapping (default: os.environ).
        file_settings: the ``knife:`` section from load_config_file().
    """
    env = os.environ if env is None else env
    sources = [cli_settings, _env_settings(env), file_settings or {}]

    def setting(key, default=None):
        return resolve_setting(*(source.get(key) for source in sources), default=default)

    return RackbootConfig(
        rackspace_api_username=_as_str(setting("rackspace_api_username")),
        rackspace_api_key=_as_str(setting("rackspace_api_key")),
        rackspace_region=str(setting("rackspace_region", DEFAULT_REGION)).upper(),
        rackspace_auth_url=str(setting("rackspace_auth_url", DEFAULT_AUTH_URL)).rstrip("/"),
        flavor=str(setting("flavor", DEFAULT_FLAVOR)),
        image=_as_str(setting("image")),
        server_name=_as_str(setting("server_name")),
        node_name=_as_str(setting("node_name")),
        ssh_user=str(setting("ssh_user", DEFAULT_SSH_USER)),
        ssh_password=_as_str(setting("ssh_password")),
        identity_file=_as_str(setting("identity_file")),
        distro=str(setting("distro", DEFAULT_DISTRO)),
        template_file=_as_str(setting("template_file")),
        environment=_as_str(setting("environment")),
        use_sudo=bool(setting("use_sudo", False)),
        prerelease=bool(setting("prerelease", False)),
        dry_run=bool(setting("dry_run", False)),
    )


def validate_config(config: RackbootConfig) -> None:
    """Raise ValueError when settings needed to talk to the provider are missing."""
    if config.dry_run:
        return
    missing = []
    if not config.rackspace_api_username:
        missing.append("API username (--rackspace-api-username or RACKSPACE_USERNAME)")
    if not config.rackspace_api_key:
        missing.append("API key (--rackspace-api-key or RACKSPACE_API_KEY)")
    if not config.image:
        missing.append("image (--image or knife.image in the config file)")
    if missing:
        raise ValueError("Missing required settings: " + "; ".join(missing))
