"""Health-check endpoints."""

from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends

from borgbridge import __version__
from borgbridge.auth import require_api_key
from borgbridge.models.commands import LogEvent
from borgbridge.models.responses import HealthResponse, ToolHealthResponse
from borgbridge.services import borg_commands
from borgbridge.services.executor import command_executor
from borgbridge.services.mounts import mount_supervisor

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def service_health() -> HealthResponse:
    """Basic liveness probe (no auth required)."""
    return HealthResponse(
        status="ok",
        version=__version__,
        backend=command_executor.cfg.backend.value,
        active_mounts=len(mount_supervisor.registry),
    )


@router.get(
    "/tool/health",
    response_model=ToolHealthResponse,
    dependencies=[Depends(require_api_key)],
)
async def tool_health() -> ToolHealthResponse:
    """Check that borg runs on the configured backend (``borg --version``)."""
    output: list[LogEvent] = []
    result = await command_executor.execute(
        borg_commands.version(),
        f"tool-health-{uuid4().hex[:8]}",
        on_output=output.append,
    )
    return ToolHealthResponse(
        available=result.success,
        output="".join(e.text for e in output),
        exit_code=result.exit_code,
        error=result.start_error,
    )
