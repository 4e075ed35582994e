"""Environment composition for borg invocations.

No interactive terminal is attached to anything this service spawns, so the
environment has to answer every prompt borg or ssh could ask.
"""

from __future__ import annotations

from borgbridge.config import Settings, settings
from borgbridge.models.commands import BackendKind, CommandOverrides

ACCESS_OK_VARS: dict[str, str] = {
    "BORG_UNKNOWN_UNENCRYPTED_REPO_ACCESS_IS_OK": "yes",
    "BORG_RELOCATED_REPO_ACCESS_IS_OK": "yes",
}

HOST_CHECK_OFF_OPTS = "-o StrictHostKeyChecking=no -o UserKnownHostsFile=/dev/null"


def ssh_command(*, batch_mode: bool, disable_host_check: bool) -> str | None:
    """Build the BORG_RSH value, or None when plain ``ssh`` is fine."""
    parts: list[str] = []
    if batch_mode:
        parts.append("-o BatchMode=yes")
    if disable_host_check:
        parts.append(HOST_CHECK_OFF_OPTS)
    if not parts:
        return None
    return " ".join(["ssh", *parts])


def forwarding_list(names: list[str] | dict[str, str]) -> str:
    """WSLENV value declaring *names* for passthrough into the layer."""
    return ":".join(n for n in names if n != "WSLENV")


def compose(
    cfg: Settings | None = None,
    overrides: CommandOverrides | None = None,
    *,
    backend: BackendKind | None = None,
) -> dict[str, str]:
    """Return the variables to set on top of the host environment."""
    _cfg = cfg or settings
    ovr = overrides or CommandOverrides()
    kind = backend or _cfg.backend

    passphrase = (
        ovr.passphrase if ovr.passphrase is not None else _cfg.default_passphrase
    )
    disable_host_check = (
        ovr.disable_host_check
        if ovr.disable_host_check is not None
        else _cfg.disable_host_check
    )

    env: dict[str, str] = {"BORG_PASSPHRASE": passphrase}
    env.update(ACCESS_OK_VARS)
    env["BORG_DISPLAY_PASSPHRASE"] = "no"

    rsh = ssh_command(
        batch_mode=_cfg.ssh_batch_mode,
        disable_host_check=disable_host_check,
    )
    if rsh is not None:
        env["BORG_RSH"] = rsh

    env.update(ovr.extra_env)

    # Variables set on the host are invisible inside the layer unless listed.
    if kind is BackendKind.wsl:
        env["WSLENV"] = forwarding_list(env)
    return env
