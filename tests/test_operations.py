"""Tests for borg argument builders and the named-operation table."""

from __future__ import annotations

import pytest

from borgbridge.config import Settings
from borgbridge.models.commands import BackendKind, CommandOverrides
from borgbridge.models.responses import OperationRequest
from borgbridge.services import borg_commands
from borgbridge.services.operations import (
    OperationError,
    UnknownOperation,
    build_operation,
    operation_names,
)

NATIVE = Settings(backend=BackendKind.native)
LAYER = Settings(backend=BackendKind.wsl)


class TestRepoUrl:
    def test_ssh_scheme(self):
        loc = borg_commands.parse_repo_url("ssh://backup@nas.local:2222/./repo")
        assert loc.is_ssh
        assert (loc.user, loc.host, loc.port, loc.path) == (
            "backup", "nas.local", "2222", "/./repo",
        )
        assert loc.user_host == "backup@nas.local"

    def test_ssh_default_port(self):
        loc = borg_commands.parse_repo_url("ssh://nas/srv/repo")
        assert loc.port == "22"
        assert loc.user_host == "nas"

    def test_scp_style(self):
        loc = borg_commands.parse_repo_url("me@host:backups/repo")
        assert loc.is_ssh and loc.host == "host" and loc.path == "backups/repo"

    def test_local(self):
        loc = borg_commands.parse_repo_url("/mnt/d/borg")
        assert not loc.is_ssh
        assert loc.path == "/mnt/d/borg"


class TestBuilders:
    def test_init_modes(self):
        assert borg_commands.init("r") == ["init", "--encryption", "repokey-blake2", "r"]
        assert borg_commands.init("r", "none")[2] == "none"

    def test_init_unknown_mode(self):
        with pytest.raises(ValueError):
            borg_commands.init("r", "rot13")

    def test_create_translates_sources_in_layer(self):
        args = borg_commands.create("r", "a1", [r"C:\Users\me\Docs"], layer=True)
        assert args[-2:] == ["r::a1", "/mnt/c/Users/me/Docs"]

    def test_create_compression(self):
        assert "--compression" not in borg_commands.create("r", "a", ["/x"], compression="auto")
        args = borg_commands.create("r", "a", ["/x"], compression="zstd,6")
        assert args[args.index("--compression") + 1] == "zstd,6"

    def test_prune_keeps(self):
        args = borg_commands.prune("r", keep_within="2d", daily=7, monthly=6)
        assert args[:4] == ["prune", "-v", "--list", "r"]
        assert args[4:] == [
            "--keep-within", "2d", "--keep-daily", "7", "--keep-monthly", "6",
        ]

    def test_mount_is_foreground(self):
        assert borg_commands.mount("r", "a", "/mnt/x") == [
            "mount", "--foreground", "-o", "allow_other", "r::a", "/mnt/x",
        ]

    def test_ssh_probe(self):
        loc = borg_commands.parse_repo_url("ssh://u@h:23/repo")
        args = borg_commands.ssh_probe(loc, disable_host_check=True)
        assert args[:2] == ["-p", "23"]
        assert "StrictHostKeyChecking=no" in args
        assert args[-2:] == ["u@h", "borg --version"]


class TestOperations:
    def test_names(self):
        names = operation_names()
        assert {"init", "create", "prune", "delete", "extract", "test-connection"} <= set(names)
        assert names == sorted(names)

    def test_unknown(self):
        with pytest.raises(UnknownOperation, match="Unknown operation") as exc_info:
            build_operation("format-disk", OperationRequest(repo_url="r"), NATIVE)
        assert exc_info.value.name == "format-disk"
        assert isinstance(exc_info.value, OperationError)

    def test_invalid_parameters_are_not_unknown(self):
        with pytest.raises(OperationError) as exc_info:
            build_operation("diff", OperationRequest(repo_url="r", archive="a"), NATIVE)
        assert not isinstance(exc_info.value, UnknownOperation)

    def test_missing_archive(self):
        with pytest.raises(OperationError, match="archive"):
            build_operation("info", OperationRequest(repo_url="r"), NATIVE)

    def test_bad_encryption_becomes_operation_error(self):
        req = OperationRequest(repo_url="r", encryption="rot13")
        with pytest.raises(OperationError):
            build_operation("init", req, NATIVE)

    def test_create_requires_paths(self):
        with pytest.raises(OperationError, match="paths"):
            build_operation("create", OperationRequest(repo_url="r", archive="a"), NATIVE)

    def test_create_layer_paths(self):
        req = OperationRequest(repo_url="r", archive="a", paths=["D:/photos"])
        call = build_operation("create", req, LAYER)
        assert call.args[-1] == "/mnt/d/photos"

    def test_extract_runs_in_destination(self):
        req = OperationRequest(repo_url="r", archive="a", destination="/restore")
        call = build_operation("extract", req, NATIVE)
        assert call.cwd == "/restore"
        assert call.args[-1] == "r::a"

    def test_delete_sets_confirmation_env(self):
        call = build_operation("delete", OperationRequest(repo_url="r"), NATIVE)
        merged = call.merged_overrides(CommandOverrides(extra_env={"X": "1"}))
        assert merged.extra_env == {
            "X": "1", "BORG_DELETE_I_KNOW_WHAT_I_AM_DOING": "yes",
        }

    def test_merged_overrides_keeps_caller_fields(self):
        call = build_operation("delete", OperationRequest(repo_url="r"), NATIVE)
        merged = call.merged_overrides(CommandOverrides(passphrase="p"))
        assert merged.passphrase == "p"

    def test_test_connection_local(self):
        call = build_operation("test-connection", OperationRequest(repo_url="/srv/r"), NATIVE)
        assert call.local_message.startswith("Checking local path")
        assert call.args == []

    def test_test_connection_ssh_override(self):
        req = OperationRequest(
            repo_url="ssh://u@h/r",
            overrides=CommandOverrides(disable_host_check=True),
        )
        call = build_operation("test-connection", req, NATIVE)
        assert call.binary == "ssh"
        assert "StrictHostKeyChecking=no" in call.args
