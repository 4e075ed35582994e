"""Common API request / response models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from borgbridge.models.commands import CommandOverrides, CommandResult, LogEvent


class HealthResponse(BaseModel):
    status: str
    version: str
    backend: str
    active_mounts: int = 0


class ToolHealthResponse(BaseModel):
    available: bool
    output: str = ""
    exit_code: Optional[int] = None
    error: Optional[str] = None


class ExecuteRequest(BaseModel):
    args: list[str] = Field(min_length=1)
    command_id: Optional[str] = None
    binary: Optional[str] = None
    cwd: Optional[str] = None
    overrides: Optional[CommandOverrides] = None


class ExecuteResponse(BaseModel):
    command_id: str
    result: CommandResult
    output: list[LogEvent] = []


class OperationRequest(BaseModel):
    """Parameters for a named borg operation; each uses the fields it needs."""

    repo_url: str
    archive: Optional[str] = None
    archive2: Optional[str] = None
    paths: list[str] = Field(default_factory=list)
    encryption: str = "repokey"
    compression: Optional[str] = None
    destination: Optional[str] = None
    keep_within: Optional[str] = None
    keep_daily: Optional[int] = None
    keep_weekly: Optional[int] = None
    keep_monthly: Optional[int] = None
    keep_yearly: Optional[int] = None
    command_id: Optional[str] = None
    overrides: Optional[CommandOverrides] = None


class MountRequest(BaseModel):
    """Either raw ``args`` or ``repo_url`` + ``archive`` to build them."""

    target_path: str
    mount_id: Optional[str] = None
    args: Optional[list[str]] = None
    repo_url: Optional[str] = None
    archive: Optional[str] = None
    overrides: Optional[CommandOverrides] = None


class MountResponse(BaseModel):
    mount_id: str
    success: bool
    pid: Optional[int] = None
    error: Optional[str] = None
