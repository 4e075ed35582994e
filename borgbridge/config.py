"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from borgbridge.models.commands import BackendKind


class Settings(BaseSettings):
    """All configuration is driven by ``BORGBRIDGE_*`` environment variables."""

    # Backend selection
    backend: BackendKind = BackendKind.wsl
    executable_path: str = "borg"
    binary_name: str = "borg"

    # Compatibility layer (WSL)
    layer_launcher: str = "wsl"
    layer_exec_flag: str = "--exec"
    layer_unmount_binary: str = "fusermount3"
    auto_fuse_setup: bool = True

    # Defaults for the borg environment (per-call overrides win)
    default_passphrase: str = ""
    disable_host_check: bool = False
    ssh_batch_mode: bool = True

    # Mount supervision
    mount_confirm_delay_seconds: float = Field(default=2.5, ge=0)
    mount_routing_id: str = "mount"

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8765
    api_key: str = ""

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(
        env_prefix="BORGBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def uses_layer(self) -> bool:
        return self.backend is BackendKind.wsl


# Singleton – import this from anywhere
settings = Settings()
