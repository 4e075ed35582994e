"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Force settings to use test-safe defaults before any import
os.environ.setdefault("BORGBRIDGE_BACKEND", "native")
os.environ.setdefault("BORGBRIDGE_API_KEY", "")
os.environ.setdefault("BORGBRIDGE_DEFAULT_PASSPHRASE", "")
os.environ.setdefault("BORGBRIDGE_MOUNT_CONFIRM_DELAY_SECONDS", "0.5")

import pytest
from httpx import ASGITransport, AsyncClient

from borgbridge.config import Settings
from borgbridge.models.commands import BackendKind, LogEvent, MountExitEvent
from borgbridge.services.executor import CommandExecutor
from borgbridge.services.mounts import MountSupervisor
from borgbridge.services.output_bus import OutputBus
from tests.fake_borg import install_fake_borg, install_fake_wsl


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_borg(tmp_path):
    """Path to an executable fake borg script."""
    return install_fake_borg(tmp_path)


@pytest.fixture
def fake_wsl(tmp_path):
    return install_fake_wsl(tmp_path)


@pytest.fixture
def native_settings(fake_borg):
    return Settings(
        backend=BackendKind.native,
        executable_path=str(fake_borg),
        default_passphrase="s3cret",
        mount_confirm_delay_seconds=0.5,
        auto_fuse_setup=False,
    )


@pytest.fixture
def layer_settings(fake_borg, fake_wsl):
    """WSL backend where the launcher is the fake wsl script."""
    return Settings(
        backend=BackendKind.wsl,
        layer_launcher=str(fake_wsl),
        binary_name=str(fake_borg),
        default_passphrase="s3cret",
        mount_confirm_delay_seconds=0.5,
        auto_fuse_setup=False,
    )


@pytest.fixture
def bus():
    return OutputBus()


@pytest.fixture
def executor(native_settings, bus):
    return CommandExecutor(native_settings, bus)


@pytest.fixture
async def supervisor(executor):
    sup = MountSupervisor(executor=executor)
    yield sup
    await sup.shutdown(timeout=2.0)


@pytest.fixture
def events(bus):
    """Record every output event for a routing id: ``events("c1")``."""
    recorded: dict[str, list[LogEvent]] = {}

    def _listen(routing_id: str) -> list[LogEvent]:
        recorded[routing_id] = []
        bus.subscribe(routing_id, recorded[routing_id].append)
        return recorded[routing_id]

    return _listen


@pytest.fixture
def exits(bus):
    recorded: list[MountExitEvent] = []
    bus.subscribe_exits(recorded.append)
    return recorded


@pytest.fixture
def patched_services(executor, supervisor, bus):
    """Swap the service singletons used by the routers for test instances."""
    import borgbridge.routers.commands as rc
    import borgbridge.routers.events as re_
    import borgbridge.routers.health as rh
    import borgbridge.routers.mounts as rm

    originals = (
        rc.command_executor, rh.command_executor, rh.mount_supervisor,
        rm.mount_supervisor, re_.output_bus,
    )
    rc.command_executor = executor
    rh.command_executor = executor
    rh.mount_supervisor = supervisor
    rm.mount_supervisor = supervisor
    re_.output_bus = bus
    yield
    (
        rc.command_executor, rh.command_executor, rh.mount_supervisor,
        rm.mount_supervisor, re_.output_bus,
    ) = originals


@pytest.fixture
async def client(patched_services):
    """Async test client wired to the test service instances."""
    from borgbridge.main import app as fastapi_app

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
