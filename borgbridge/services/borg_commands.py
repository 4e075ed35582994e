"""Argument builders for the borg operations the front-end offers.

Each builder returns the argument list for one borg invocation; none of them
spawn anything. JSON produced by ``info --json`` / ``list --json-lines`` is
left to the caller to interpret.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from borgbridge.services.backend import to_layer_path

ENCRYPTION_MODES: dict[str, str] = {
    "repokey": "repokey-blake2",
    "keyfile": "keyfile-blake2",
    "none": "none",
}

DESTROY_ENV: dict[str, str] = {"BORG_DELETE_I_KNOW_WHAT_I_AM_DOING": "yes"}

_SSH_URL_RE = re.compile(r"^ssh://(?:([^@]+)@)?([^:/]+)(?::(\d+))?(.*)$")
_SCP_URL_RE = re.compile(r"^([^@]+)@([^:]+):(.*)$")


@dataclass(frozen=True)
class RepoLocation:
    is_ssh: bool
    path: str
    user: Optional[str] = None
    host: Optional[str] = None
    port: str = "22"

    @property
    def user_host(self) -> str:
        return f"{self.user}@{self.host}" if self.user else f"{self.host}"


def parse_repo_url(url: str) -> RepoLocation:
    """Split ``ssh://user@host:port/path`` or ``user@host:path`` URLs."""
    m = _SSH_URL_RE.match(url)
    if m:
        return RepoLocation(
            is_ssh=True,
            user=m.group(1),
            host=m.group(2),
            port=m.group(3) or "22",
            path=m.group(4),
        )
    m = _SCP_URL_RE.match(url)
    if m:
        return RepoLocation(
            is_ssh=True, user=m.group(1), host=m.group(2), path=m.group(3),
        )
    return RepoLocation(is_ssh=False, path=url)


def archive_ref(repo_url: str, archive: str) -> str:
    return f"{repo_url}::{archive}"


# ---------------------------------------------------------------------------
# Repository operations
# ---------------------------------------------------------------------------

def version() -> list[str]:
    return ["--version"]


def init(repo_url: str, encryption: str = "repokey") -> list[str]:
    try:
        mode = ENCRYPTION_MODES[encryption]
    except KeyError:
        raise ValueError(f"unknown encryption mode: {encryption}") from None
    return ["init", "--encryption", mode, repo_url]


def compact(repo_url: str) -> list[str]:
    return ["compact", "-v", repo_url]


def empty(repo_url: str) -> list[str]:
    """Delete every archive but keep the repository and its keys."""
    return ["delete", "--force", "--progress", "--stats", "-a", "*", repo_url]


def destroy(repo_url: str) -> list[str]:
    """Delete the whole repository (needs :data:`DESTROY_ENV`)."""
    return ["delete", repo_url]


def break_lock(repo_url: str) -> list[str]:
    return ["break-lock", repo_url]


def key_export(repo_url: str) -> list[str]:
    return ["key", "export", repo_url]


def prune(
    repo_url: str,
    *,
    keep_within: str | None = None,
    daily: int | None = None,
    weekly: int | None = None,
    monthly: int | None = None,
    yearly: int | None = None,
) -> list[str]:
    args = ["prune", "-v", "--list", repo_url]
    if keep_within:
        args += ["--keep-within", keep_within]
    for flag, value in (
        ("--keep-daily", daily),
        ("--keep-weekly", weekly),
        ("--keep-monthly", monthly),
        ("--keep-yearly", yearly),
    ):
        if value:
            args += [flag, str(value)]
    return args


# ---------------------------------------------------------------------------
# Archive operations
# ---------------------------------------------------------------------------

def create(
    repo_url: str,
    archive: str,
    paths: list[str],
    *,
    compression: str | None = None,
    layer: bool = False,
) -> list[str]:
    """``borg create``; source paths are translated when running in the layer."""
    sources = [to_layer_path(p) for p in paths] if layer else list(paths)
    args = ["create", "--progress", "--stats"]
    if compression and compression != "auto":
        args += ["--compression", compression]
    return args + [archive_ref(repo_url, archive), *sources]


def info(repo_url: str, archive: str) -> list[str]:
    return ["info", "--json", archive_ref(repo_url, archive)]


def list_files(repo_url: str, archive: str) -> list[str]:
    return ["list", "--json-lines", archive_ref(repo_url, archive)]


def diff(repo_url: str, archive1: str, archive2: str) -> list[str]:
    return ["diff", archive_ref(repo_url, archive1), archive2]


def extract(repo_url: str, archive: str, paths: list[str] | None = None) -> list[str]:
    """``borg extract``; the destination is the process working directory."""
    return ["extract", "--progress", archive_ref(repo_url, archive), *(paths or [])]


def mount(repo_url: str, archive: str, mount_point: str) -> list[str]:
    return [
        "mount", "--foreground", "-o", "allow_other",
        archive_ref(repo_url, archive), mount_point,
    ]


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------

def ssh_probe(location: RepoLocation, *, disable_host_check: bool = False) -> list[str]:
    """ssh arguments that run ``borg --version`` on the repository host."""
    args = ["-p", location.port]
    if disable_host_check:
        args += ["-o", "StrictHostKeyChecking=no", "-o", "UserKnownHostsFile=/dev/null"]
    return args + ["-o", "BatchMode=yes", location.user_host, "borg --version"]
