"""Mount supervision endpoints."""

from __future__ import annotations

from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException

from borgbridge.auth import require_api_key
from borgbridge.models.commands import MountInfo, UnmountResult
from borgbridge.models.responses import MountRequest, MountResponse
from borgbridge.services import borg_commands
from borgbridge.services.mounts import mount_supervisor

router = APIRouter(
    prefix="/mounts",
    tags=["mounts"],
    dependencies=[Depends(require_api_key)],
)


@router.post("", response_model=MountResponse)
async def start_mount(req: MountRequest) -> MountResponse:
    """Start ``borg mount --foreground`` and wait for the confirmation window."""
    if req.args:
        args = req.args
    elif req.repo_url and req.archive:
        args = borg_commands.mount(req.repo_url, req.archive, req.target_path)
    else:
        raise HTTPException(
            status_code=422,
            detail="Provide either 'args' or both 'repo_url' and 'archive'",
        )

    mount_id = req.mount_id or f"mount-{uuid4().hex[:12]}"
    result = await mount_supervisor.start_mount(
        args, mount_id, req.target_path, req.overrides,
    )
    return MountResponse(
        mount_id=mount_id,
        success=result.success,
        pid=result.pid,
        error=result.error,
    )


@router.get("", response_model=list[MountInfo])
async def list_mounts() -> list[MountInfo]:
    return mount_supervisor.active()


@router.delete("/{mount_id}", response_model=UnmountResult)
async def stop_mount(mount_id: str, target_path: Optional[str] = None) -> UnmountResult:
    """Terminate the mount process and unmount *target_path*.

    *target_path* may be omitted while the mount is still registered.
    """
    if target_path is None:
        record = mount_supervisor.registry.get(mount_id)
        if record is None:
            raise HTTPException(
                status_code=422,
                detail="target_path is required for unregistered mounts",
            )
        target_path = record.target_path
    return await mount_supervisor.stop_mount(mount_id, target_path)
