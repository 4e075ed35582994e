"""Supervision of long-lived ``borg mount --foreground`` processes.

A mount is registered the moment its process is spawned and unregistered the
moment that process exits (or is explicitly stopped). Whether a mount "took"
is judged by a fixed-delay liveness check: if the record is still registered
when the confirmation window closes, the mount is reported as up.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from borgbridge.config import Settings
from borgbridge.models.commands import (
    CommandOverrides,
    MountExitEvent,
    MountInfo,
    MountResult,
    UnmountResult,
)
from borgbridge.services.backend import (
    ResolutionError,
    prepare_mount_target,
    resolve,
    unmount_invocation,
)
from borgbridge.services.executor import (
    CommandExecutor,
    command_executor,
    signal_process,
)
from borgbridge.utils.logging import get_logger

log = get_logger(__name__)

FUSE_SETUP_ID = "fuse-setup"

FUSE_SETUP_SCRIPT = """\
touch /etc/fuse.conf &&
sed -i 's/^#\\s*user_allow_other/user_allow_other/' /etc/fuse.conf &&
if ! grep -q '^user_allow_other' /etc/fuse.conf; then
    echo 'user_allow_other' >> /etc/fuse.conf;
fi &&
chmod 666 /dev/fuse &&
echo 'FUSE permissions verified.'
"""


@dataclass
class MountRecord:
    mount_id: str
    process: asyncio.subprocess.Process
    target_path: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def pid(self) -> int:
        return self.process.pid


class MountRegistry:
    """mount id -> MountRecord for every mount believed alive.

    All methods are synchronous, so each mutation is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._records: dict[str, MountRecord] = {}

    def add(self, record: MountRecord) -> None:
        self._records[record.mount_id] = record

    def get(self, mount_id: str) -> Optional[MountRecord]:
        return self._records.get(mount_id)

    def pop(self, mount_id: str) -> Optional[MountRecord]:
        return self._records.pop(mount_id, None)

    def discard(self, record: MountRecord) -> bool:
        """Remove *record* only if it is still the registered one."""
        if self._records.get(record.mount_id) is record:
            del self._records[record.mount_id]
            return True
        return False

    def clear(self) -> list[MountRecord]:
        records = list(self._records.values())
        self._records.clear()
        return records

    def records(self) -> list[MountRecord]:
        return list(self._records.values())

    def __contains__(self, mount_id: object) -> bool:
        return mount_id in self._records

    def __len__(self) -> int:
        return len(self._records)


class MountSupervisor:
    """Starts, confirms, and tears down mount processes."""

    def __init__(
        self,
        cfg: Settings | None = None,
        executor: CommandExecutor | None = None,
        registry: MountRegistry | None = None,
    ) -> None:
        self._executor = executor or command_executor
        self._cfg = cfg or self._executor.cfg
        self.registry = registry or MountRegistry()
        # every process still being watched, registered or not
        self._watchers: dict[asyncio.Task, MountRecord] = {}

    # ── helpers ───────────────────────────────────────────────────────

    async def ensure_fuse_config(self) -> bool:
        """Allow non-root FUSE mounts with ``allow_other`` inside the layer."""
        if not self._cfg.uses_layer:
            return True
        result = await self._executor.execute(
            ["-c", FUSE_SETUP_SCRIPT],
            FUSE_SETUP_ID,
            binary="bash",
            layer_user="root",
        )
        if not result.success:
            log.warning(
                "mount.fuse_setup_failed",
                rc=result.exit_code,
                error=result.start_error,
            )
        return result.success

    async def _watch(self, record: MountRecord) -> None:
        """Stream the mount's output and unregister it when it exits."""
        routing_id = self._cfg.mount_routing_id
        proc = record.process
        rc: Optional[int] = None
        try:
            await asyncio.gather(
                self._executor.pump(proc.stdout, routing_id, "stdout"),
                self._executor.pump(proc.stderr, routing_id, "stderr"),
            )
            rc = await proc.wait()
        finally:
            self.registry.discard(record)
            log.info("mount.exited", mount_id=record.mount_id, rc=rc)
            self._executor.bus.publish_exit(
                MountExitEvent(mount_id=record.mount_id, exit_code=rc),
            )

    # ── public ────────────────────────────────────────────────────────

    async def start_mount(
        self,
        args: list[str],
        mount_id: str,
        target_path: str,
        overrides: CommandOverrides | None = None,
    ) -> MountResult:
        if mount_id in self.registry:
            return MountResult(success=False, error="MOUNT_ID_IN_USE")

        try:
            invocation = resolve(args, self._cfg, overrides=overrides)
        except ResolutionError as exc:
            return MountResult(success=False, error=str(exc))

        if self._cfg.uses_layer:
            if self._cfg.auto_fuse_setup:
                await self.ensure_fuse_config()
            await prepare_mount_target(target_path, self._cfg)

        try:
            proc = await self._executor.spawn(invocation)
        except OSError as exc:
            log.warning("mount.spawn_failed", mount_id=mount_id, error=str(exc))
            return MountResult(success=False, error=str(exc))

        if mount_id in self.registry:
            # lost a race with another start for the same id
            signal_process(proc, kill=True)
            await proc.communicate()
            log.info("mount.duplicate_reaped", mount_id=mount_id, rc=proc.returncode)
            return MountResult(success=False, error="MOUNT_ID_IN_USE")

        record = MountRecord(mount_id=mount_id, process=proc, target_path=target_path)
        self.registry.add(record)
        log.info("mount.spawned", mount_id=mount_id, pid=proc.pid, target=target_path)

        task = asyncio.create_task(self._watch(record))
        self._watchers[task] = record
        task.add_done_callback(lambda t: self._watchers.pop(t, None))

        await asyncio.sleep(self._cfg.mount_confirm_delay_seconds)

        if self.registry.get(mount_id) is record:
            log.info("mount.confirmed", mount_id=mount_id, pid=proc.pid)
            return MountResult(success=True, pid=proc.pid)
        log.warning("mount.not_confirmed", mount_id=mount_id)
        return MountResult(success=False, error="PROCESS_EXITED")

    async def stop_mount(self, mount_id: str, target_path: str) -> UnmountResult:
        """Terminate the mount process (if any) and always issue an unmount.

        The record is dropped as soon as the signal is sent; the exit
        notification still follows once the process actually dies.
        """
        record = self.registry.pop(mount_id)
        if record is not None:
            signal_process(record.process)
            log.info("mount.terminated", mount_id=mount_id, pid=record.pid)
        else:
            log.info("mount.not_registered", mount_id=mount_id)

        # The filesystem mount can outlive the process (or a previous session).
        try:
            invocation = unmount_invocation(target_path, self._cfg)
        except ResolutionError as exc:
            log.warning("mount.unmount_unresolved", mount_id=mount_id, error=str(exc))
        else:
            result = await self._executor.run(invocation, self._cfg.mount_routing_id)
            log.info("mount.unmount_issued", mount_id=mount_id, rc=result.exit_code)
        return UnmountResult(success=True)

    def active(self) -> list[MountInfo]:
        return [
            MountInfo(
                mount_id=r.mount_id,
                pid=r.pid,
                target_path=r.target_path,
                created_at=r.created_at,
            )
            for r in self.registry.records()
        ]

    # ── lifecycle ─────────────────────────────────────────────────────

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Terminate every registered mount; escalate to SIGKILL after *timeout*."""
        registered = self.registry.clear()
        for record in registered:
            signal_process(record.process)
        if registered:
            log.info("mount.shutdown", count=len(registered))

        if not self._watchers:
            return
        _, pending = await asyncio.wait(set(self._watchers), timeout=timeout)
        for task in pending:
            signal_process(self._watchers[task].process, kill=True)
        if pending:
            await asyncio.wait(pending, timeout=timeout)

    def kill_all(self) -> None:
        """Synchronous last resort for interpreter exit."""
        self.registry.clear()
        for record in list(self._watchers.values()):
            signal_process(record.process, kill=True)


# Singleton
mount_supervisor = MountSupervisor()
