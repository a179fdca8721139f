"""Shared pytest fixtures for all test modules."""

import os
import subprocess
import sys

import pytest

from rackboot.provisioning.types import Instance

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the rackboot CLI as a subprocess."""

    def _run(*args, env=None):
        full_env = dict(os.environ)
        for var in ("RACKSPACE_API_KEY", "RACKSPACE_USERNAME", "RACKSPACE_REGION"):
            full_env.pop(var, None)
        full_env["HOME"] = project_root  # no ~/.rackboot.yaml
        full_env.update(env or {})
        result = subprocess.run(
            [sys.executable, "-m", "rackboot.rackboot", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env=full_env,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


# ── Fakes ───────────────────────────────────────────────────────────


class FakeProvider:
    """ProviderClient stand-in that becomes ready after *ready_after* refreshes."""

    def __init__(self, instance, ready_after=1, public_address="203.0.113.9", private_address="10.176.0.9"):
        self.instance = instance
        self.ready_after = ready_after
        self.public_address = public_address
        self.private_address = private_address
        self.created = []
        self.refresh_calls = 0

    async def create(self, request):
        self.created.append(request)
        return self.instance

    async def refresh(self, instance):
        self.refresh_calls += 1
        if self.refresh_calls >= self.ready_after:
            instance.status = "ACTIVE"
            instance.ready = True
            instance.public_address = self.public_address
            instance.private_address = self.private_address
        else:
            instance.status = "BUILD"
        return instance


class FakeReader:
    def __init__(self, banner=b"SSH-2.0-OpenSSH_9.6\r\n"):
        self.banner = banner

    async def readline(self):
        return self.banner


class FakeWriter:
    def __init__(self):
        self.closed = False
        self.wait_closed_calls = 0

    def close(self):
        self.closed = True

    async def wait_closed(self):
        self.wait_closed_calls += 1


class ScriptedConnect:
    """asyncio.open_connection stand-in replaying a list of outcomes.

    Outcomes: "refused", "timeout", "connected", or an exception instance.
    """

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.writers = []

    async def __call__(self, host, port):
        self.calls.append((host, port))
        outcome = self.outcomes.pop(0)
        if outcome == "refused":
            raise ConnectionRefusedError(111, "Connection refused")
        if outcome == "timeout":
            raise TimeoutError()
        if isinstance(outcome, BaseException):
            raise outcome
        writer = FakeWriter()
        self.writers.append(writer)
        return FakeReader(), writer


class RecordingSleep:
    """asyncio.sleep stand-in that records requested delays and returns at once."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class RecordingDispatcher:
    """Bootstrap dispatcher stand-in; instances are kept for inspection."""

    created = []

    def __init__(self, target_host, spec, dry_run=False):
        self.target_host = target_host
        self.spec = spec
        self.dry_run = dry_run
        self.runs = 0
        RecordingDispatcher.created.append(self)

    async def run(self):
        self.runs += 1


@pytest.fixture
def make_instance():
    """Return a factory for freshly created (not yet ready) instances."""

    def _make(**overrides):
        fields = {
            "id": "web1-id",
            "name": "web1",
            "host_id": "host-abc",
            "flavor_name": "512MB Standard Instance",
            "image_name": "Ubuntu 22.04",
            "credential_secret": "s3cretPassw0rd",
            "status": "BUILD",
        }
        fields.update(overrides)
        return Instance(**fields)

    return _make


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def recording_dispatcher():
    RecordingDispatcher.created = []
    yield RecordingDispatcher
    RecordingDispatcher.created = []


def failing_lookup(address):
    raise OSError(f"no PTR record for {address}")


@pytest.fixture
def dns_failure():
    """A reverse-lookup function that always fails."""
    return failing_lookup


@pytest.fixture
def scripted_connect():
    """Return the ScriptedConnect factory: scripted_connect(["refused", "connected"])."""
    return ScriptedConnect


@pytest.fixture
def fake_provider():
    """Return the FakeProvider factory: fake_provider(instance, ready_after=3)."""
    return FakeProvider
