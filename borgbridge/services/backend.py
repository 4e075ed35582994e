"""Backend resolution: logical borg arguments -> concrete process invocation.

Two backends are supported:

* **native** – run the borg executable (or a forced binary such as ``ssh``)
  directly, through the host shell so that quoted Windows paths survive.
* **wsl** – run ``wsl --exec <binary> <args...>``; no shell, no existence
  check (the layer reports a missing binary itself at runtime).
"""

from __future__ import annotations

import asyncio
import os
import re
import shlex

from borgbridge.config import Settings, settings
from borgbridge.models.commands import BackendKind, CommandOverrides, Invocation
from borgbridge.services.environment import compose
from borgbridge.utils.logging import get_logger

log = get_logger(__name__)

_DRIVE_RE = re.compile(r"^([a-zA-Z]):[\\/]?(.*)$")


class ResolutionError(Exception):
    """The invocation could not be built; nothing was spawned."""


class ExecutableNotFound(ResolutionError):
    def __init__(self, path: str) -> None:
        super().__init__(f"borg executable not found: {path}")
        self.path = path


def looks_like_path(value: str) -> bool:
    return "/" in value or "\\" in value


def to_layer_path(path: str) -> str:
    """Translate a Windows path into its form inside the layer.

    ``C:\\Users\\me`` -> ``/mnt/c/Users/me``; POSIX paths pass through.
    """
    m = _DRIVE_RE.match(path)
    if m:
        drive = m.group(1).lower()
        rest = m.group(2).replace("\\", "/").lstrip("/")
        return f"/mnt/{drive}/{rest}" if rest else f"/mnt/{drive}"
    return path.replace("\\", "/")


# ── resolution ────────────────────────────────────────────────────────────

def resolve(
    args: list[str],
    cfg: Settings | None = None,
    *,
    overrides: CommandOverrides | None = None,
    binary: str | None = None,
    cwd: str | None = None,
    layer_user: str | None = None,
) -> Invocation:
    """Build the invocation for *args* on the configured backend.

    *binary* replaces the borg executable (e.g. ``ssh`` or ``bash``).
    Raises :class:`ExecutableNotFound` before anything is spawned when the
    native executable is configured as a path that does not exist.
    """
    _cfg = cfg or settings
    env = compose(_cfg, overrides)
    if _cfg.backend is BackendKind.native:
        return _resolve_native(args, _cfg, env, binary=binary, cwd=cwd)
    return _resolve_layer(
        args, _cfg, env, binary=binary, cwd=cwd, layer_user=layer_user,
    )


def _resolve_native(
    args: list[str],
    cfg: Settings,
    env: dict[str, str],
    *,
    binary: str | None,
    cwd: str | None,
) -> Invocation:
    program = binary or cfg.executable_path or cfg.binary_name
    if binary is None and looks_like_path(program) and not os.path.exists(program):
        log.warning("backend.executable_missing", path=program)
        raise ExecutableNotFound(program)
    return Invocation(
        argv=(program, *args),
        backend=BackendKind.native,
        executable=program,
        env=env,
        shell=True,
        cwd=cwd,
    )


def _resolve_layer(
    args: list[str],
    cfg: Settings,
    env: dict[str, str],
    *,
    binary: str | None,
    cwd: str | None,
    layer_user: str | None,
) -> Invocation:
    program = binary or cfg.binary_name
    argv: list[str] = [cfg.layer_launcher]
    if layer_user:
        argv += ["-u", layer_user]
    argv.append(cfg.layer_exec_flag)

    if cwd:
        # The launcher cannot take a Windows cwd; change directory inside.
        inner = " ".join(shlex.quote(a) for a in (program, *args))
        script = f"cd {shlex.quote(to_layer_path(cwd))} && {inner}"
        argv += ["sh", "-c", script]
    else:
        argv += [program, *args]

    return Invocation(
        argv=tuple(argv),
        backend=BackendKind.wsl,
        executable=cfg.layer_launcher,
        env=env,
        shell=False,
    )


def unmount_invocation(target_path: str, cfg: Settings | None = None) -> Invocation:
    """The filesystem-level unmount for *target_path*, independent of any process."""
    _cfg = cfg or settings
    if _cfg.backend is BackendKind.native:
        return resolve(["umount", target_path], _cfg)
    return resolve(
        ["-u", "-z", target_path], _cfg, binary=_cfg.layer_unmount_binary,
    )


# ── mount target preparation ──────────────────────────────────────────────

async def prepare_mount_target(target_path: str, cfg: Settings | None = None) -> bool:
    """Best-effort ``mkdir -p`` of the mount point inside the layer.

    Any failure is logged and ignored: borg may still create the path itself.
    Returns True only when the command ran and exited 0.
    """
    _cfg = cfg or settings
    if not _cfg.uses_layer:
        return True

    quoted = shlex.quote(target_path)
    inv = resolve(
        ["-c", f"mkdir -p {quoted} && chmod 777 {quoted}"], _cfg, binary="sh",
    )
    try:
        proc = await asyncio.create_subprocess_exec(
            *inv.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **inv.env},
        )
        _, stderr = await proc.communicate()
    except OSError as exc:
        log.warning("backend.mkdir_failed", target=target_path, error=str(exc))
        return False
    if proc.returncode != 0:
        log.warning(
            "backend.mkdir_failed",
            target=target_path,
            rc=proc.returncode,
            err=stderr.decode(errors="replace")[:200],
        )
        return False
    return True
