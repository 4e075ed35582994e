"""Tests for borg environment composition."""

from __future__ import annotations

from borgbridge.config import Settings
from borgbridge.models.commands import BackendKind, CommandOverrides
from borgbridge.services.environment import compose, forwarding_list, ssh_command


def _cfg(**kw) -> Settings:
    base = dict(backend=BackendKind.native, default_passphrase="default-pass")
    base.update(kw)
    return Settings(**base)


class TestAlwaysSet:
    def test_passphrase_from_default(self):
        env = compose(_cfg())
        assert env["BORG_PASSPHRASE"] == "default-pass"

    def test_passphrase_empty_when_unconfigured(self):
        env = compose(_cfg(default_passphrase=""))
        assert env["BORG_PASSPHRASE"] == ""

    def test_access_ok_flags(self):
        env = compose(_cfg())
        assert env["BORG_UNKNOWN_UNENCRYPTED_REPO_ACCESS_IS_OK"] == "yes"
        assert env["BORG_RELOCATED_REPO_ACCESS_IS_OK"] == "yes"

    def test_passphrase_never_displayed(self):
        assert compose(_cfg())["BORG_DISPLAY_PASSPHRASE"] == "no"


class TestSshTransport:
    def test_batch_mode_only(self):
        env = compose(_cfg())
        assert env["BORG_RSH"] == "ssh -o BatchMode=yes"

    def test_host_check_disabled(self):
        env = compose(_cfg(disable_host_check=True))
        assert "StrictHostKeyChecking=no" in env["BORG_RSH"]
        assert "UserKnownHostsFile=/dev/null" in env["BORG_RSH"]

    def test_no_rsh_without_batch_mode_or_override(self):
        env = compose(_cfg(ssh_batch_mode=False))
        assert "BORG_RSH" not in env

    def test_rsh_added_by_override_without_batch_mode(self):
        env = compose(
            _cfg(ssh_batch_mode=False),
            CommandOverrides(disable_host_check=True),
        )
        assert env["BORG_RSH"].startswith("ssh -o StrictHostKeyChecking=no")

    def test_ssh_command_none(self):
        assert ssh_command(batch_mode=False, disable_host_check=False) is None


class TestOverrides:
    def test_passphrase_override_wins(self):
        env = compose(_cfg(), CommandOverrides(passphrase="one-off"))
        assert env["BORG_PASSPHRASE"] == "one-off"

    def test_empty_string_override_is_explicit(self):
        env = compose(_cfg(), CommandOverrides(passphrase=""))
        assert env["BORG_PASSPHRASE"] == ""

    def test_host_check_override_false_beats_default_true(self):
        env = compose(
            _cfg(disable_host_check=True),
            CommandOverrides(disable_host_check=False),
        )
        assert "StrictHostKeyChecking" not in env["BORG_RSH"]

    def test_unprovided_fields_keep_defaults(self):
        env = compose(
            _cfg(disable_host_check=True),
            CommandOverrides(passphrase="x"),
        )
        assert "StrictHostKeyChecking=no" in env["BORG_RSH"]

    def test_extra_env(self):
        env = compose(
            _cfg(),
            CommandOverrides(extra_env={"BORG_DELETE_I_KNOW_WHAT_I_AM_DOING": "yes"}),
        )
        assert env["BORG_DELETE_I_KNOW_WHAT_I_AM_DOING"] == "yes"


class TestForwardingList:
    def test_native_has_no_wslenv(self):
        assert "WSLENV" not in compose(_cfg())

    def test_layer_forwards_every_variable(self):
        env = compose(_cfg(backend=BackendKind.wsl))
        names = env["WSLENV"].split(":")
        assert set(names) == set(env) - {"WSLENV"}

    def test_layer_list_tracks_rsh_presence(self):
        without = compose(_cfg(backend=BackendKind.wsl, ssh_batch_mode=False))
        with_rsh = compose(
            _cfg(backend=BackendKind.wsl, ssh_batch_mode=False),
            CommandOverrides(disable_host_check=True),
        )
        assert "BORG_RSH" not in without["WSLENV"].split(":")
        assert "BORG_RSH" in with_rsh["WSLENV"].split(":")

    def test_layer_forwards_extra_env(self):
        env = compose(
            _cfg(backend=BackendKind.wsl),
            CommandOverrides(extra_env={"BORG_DELETE_I_KNOW_WHAT_I_AM_DOING": "yes"}),
        )
        assert "BORG_DELETE_I_KNOW_WHAT_I_AM_DOING" in env["WSLENV"].split(":")

    def test_backend_argument_overrides_config(self):
        env = compose(_cfg(), backend=BackendKind.wsl)
        assert "WSLENV" in env

    def test_forwarding_list_skips_itself(self):
        assert forwarding_list(["A", "WSLENV", "B"]) == "A:B"
