"""Command-related data structures."""

from __future__ import annotations

import os
import shlex
import subprocess
from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class BackendKind(str, Enum):
    native = "native"
    wsl = "wsl"


class FailureKind(str, Enum):
    resolution = "resolution"
    spawn = "spawn"
    runtime = "runtime"


class Invocation(BaseModel):
    """A concrete, ready-to-spawn process invocation.

    ``env`` only holds the variables composed for borg; the host environment
    is merged underneath at spawn time.
    """

    model_config = ConfigDict(frozen=True)

    argv: tuple[str, ...]
    backend: BackendKind
    executable: str
    env: dict[str, str] = Field(default_factory=dict)
    shell: bool = False
    cwd: Optional[str] = None

    @property
    def command_line(self) -> str:
        """The argv joined for shell interpretation on this host."""
        if os.name == "nt":
            return subprocess.list2cmdline(self.argv)
        return shlex.join(self.argv)


class CommandOverrides(BaseModel):
    """Per-call values that win over the configured defaults.

    ``None`` means "use the configured default".
    """

    passphrase: Optional[str] = None
    disable_host_check: Optional[bool] = None
    extra_env: dict[str, str] = Field(default_factory=dict)


class CommandResult(BaseModel):
    """Terminal state of a one-shot command."""

    success: bool
    exit_code: Optional[int] = None
    start_error: Optional[str] = None
    failure: Optional[FailureKind] = None


class LogEvent(BaseModel):
    """One chunk of process output (or a hint) tagged with its routing id."""

    id: str
    text: str
    stream: Literal["stdout", "stderr"] = "stdout"


class MountExitEvent(BaseModel):
    mount_id: str
    exit_code: Optional[int] = None


class MountResult(BaseModel):
    success: bool
    pid: Optional[int] = None
    error: Optional[str] = None


class UnmountResult(BaseModel):
    success: bool


class MountInfo(BaseModel):
    """Public view of a registered mount."""

    mount_id: str
    pid: int
    target_path: str
    created_at: datetime
