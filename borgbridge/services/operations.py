"""Named borg operations -> concrete executor calls.

Maps an operation name plus an :class:`OperationRequest` onto the borg
argument list and the executor options (forced binary, working directory,
extra environment) it needs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from borgbridge.config import Settings
from borgbridge.models.commands import CommandOverrides
from borgbridge.models.responses import OperationRequest
from borgbridge.services import borg_commands


class OperationError(ValueError):
    """Unknown operation or missing / invalid parameters."""


class UnknownOperation(OperationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown operation: {name}")
        self.name = name


@dataclass
class OperationCall:
    args: list[str]
    binary: Optional[str] = None
    cwd: Optional[str] = None
    extra_env: dict[str, str] = field(default_factory=dict)
    # set when nothing needs to run (e.g. probing a local repository)
    local_message: Optional[str] = None

    def merged_overrides(self, overrides: CommandOverrides | None) -> CommandOverrides:
        base = overrides or CommandOverrides()
        if not self.extra_env:
            return base
        return base.model_copy(
            update={"extra_env": {**base.extra_env, **self.extra_env}},
        )


def build_operation(name: str, req: OperationRequest, cfg: Settings) -> OperationCall:
    """Return the call for operation *name*. Raises OperationError."""
    builder = _OPERATION_BUILDERS.get(name)
    if builder is None:
        raise UnknownOperation(name)
    try:
        return builder(req, cfg)
    except ValueError as exc:
        raise OperationError(str(exc)) from exc


def operation_names() -> list[str]:
    return sorted(_OPERATION_BUILDERS)


def _need(value: Optional[str], name: str) -> str:
    if not value:
        raise OperationError(f"'{name}' is required for this operation")
    return value


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _build_init(r: OperationRequest, cfg: Settings) -> OperationCall:
    return OperationCall(borg_commands.init(r.repo_url, r.encryption))


def _build_create(r: OperationRequest, cfg: Settings) -> OperationCall:
    if not r.paths:
        raise OperationError("'paths' is required for this operation")
    return OperationCall(
        borg_commands.create(
            r.repo_url,
            _need(r.archive, "archive"),
            r.paths,
            compression=r.compression,
            layer=cfg.uses_layer,
        ),
    )


def _build_prune(r: OperationRequest, cfg: Settings) -> OperationCall:
    return OperationCall(
        borg_commands.prune(
            r.repo_url,
            keep_within=r.keep_within,
            daily=r.keep_daily,
            weekly=r.keep_weekly,
            monthly=r.keep_monthly,
            yearly=r.keep_yearly,
        ),
    )


def _build_delete(r: OperationRequest, cfg: Settings) -> OperationCall:
    return OperationCall(
        borg_commands.destroy(r.repo_url),
        extra_env=dict(borg_commands.DESTROY_ENV),
    )


def _build_diff(r: OperationRequest, cfg: Settings) -> OperationCall:
    return OperationCall(
        borg_commands.diff(
            r.repo_url, _need(r.archive, "archive"), _need(r.archive2, "archive2"),
        ),
    )


def _build_extract(r: OperationRequest, cfg: Settings) -> OperationCall:
    return OperationCall(
        borg_commands.extract(r.repo_url, _need(r.archive, "archive"), r.paths),
        cwd=_need(r.destination, "destination"),
    )


def _build_test_connection(r: OperationRequest, cfg: Settings) -> OperationCall:
    location = borg_commands.parse_repo_url(r.repo_url)
    if not location.is_ssh:
        return OperationCall([], local_message=f"Checking local path: {location.path}\n")
    disable = (
        r.overrides.disable_host_check
        if r.overrides and r.overrides.disable_host_check is not None
        else cfg.disable_host_check
    )
    return OperationCall(
        borg_commands.ssh_probe(location, disable_host_check=disable),
        binary="ssh",
    )


_OPERATION_BUILDERS: dict[str, Callable[[OperationRequest, Settings], OperationCall]] = {
    "init": _build_init,
    "create": _build_create,
    "prune": _build_prune,
    "compact": lambda r, cfg: OperationCall(borg_commands.compact(r.repo_url)),
    "empty": lambda r, cfg: OperationCall(borg_commands.empty(r.repo_url)),
    "delete": _build_delete,
    "diff": _build_diff,
    "info": lambda r, cfg: OperationCall(
        borg_commands.info(r.repo_url, _need(r.archive, "archive")),
    ),
    "list": lambda r, cfg: OperationCall(
        borg_commands.list_files(r.repo_url, _need(r.archive, "archive")),
    ),
    "extract": _build_extract,
    "key-export": lambda r, cfg: OperationCall(borg_commands.key_export(r.repo_url)),
    "break-lock": lambda r, cfg: OperationCall(borg_commands.break_lock(r.repo_url)),
    "test-connection": _build_test_connection,
}
