"""One-shot command execution with live output routing.

Each call spawns exactly one process, publishes every stdout/stderr chunk on
the output bus under the caller's routing id (followed by any hints derived
from it), and resolves with a :class:`CommandResult`. Nothing is raised to
the caller and nothing is retried.
"""

from __future__ import annotations

import asyncio
import codecs
import os
import signal
import subprocess
from typing import Literal, Optional

from borgbridge.config import Settings, settings
from borgbridge.models.commands import (
    CommandOverrides,
    CommandResult,
    FailureKind,
    Invocation,
    LogEvent,
)
from borgbridge.services.backend import ResolutionError, resolve
from borgbridge.services.hints import HintClassifier
from borgbridge.services.output_bus import OutputBus, OutputListener, output_bus
from borgbridge.utils.logging import get_logger

log = get_logger(__name__)

CHUNK_SIZE = 4096
_POSIX = os.name != "nt"


def signal_process(proc: asyncio.subprocess.Process, *, kill: bool = False) -> bool:
    """Ask *proc* and its children to stop.

    POSIX signals the whole session. Windows has no process groups for
    shell=True children, so the tree is force-killed with ``taskkill /T``
    whether or not *kill* is set. Returns False when the process was
    already gone. Does not wait.
    """
    if proc.returncode is not None:
        return False
    try:
        if _POSIX:
            os.killpg(proc.pid, signal.SIGKILL if kill else signal.SIGTERM)
        else:
            _kill_tree(proc)
    except ProcessLookupError:
        return False
    return True


def _kill_tree(proc: asyncio.subprocess.Process) -> None:
    try:
        done = subprocess.run(
            ["taskkill", "/T", "/F", "/PID", str(proc.pid)],
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        log.warning("exec.taskkill_failed", pid=proc.pid, error=str(exc))
        proc.kill()
        return
    if done.returncode != 0:
        log.debug("exec.taskkill_rc", pid=proc.pid, rc=done.returncode)


class CommandExecutor:
    """Spawns processes for resolved invocations and streams their output."""

    def __init__(
        self, cfg: Settings | None = None, bus: OutputBus | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._bus = bus or output_bus

    @property
    def cfg(self) -> Settings:
        return self._cfg

    @property
    def bus(self) -> OutputBus:
        return self._bus

    # ── spawning ──────────────────────────────────────────────────────

    async def spawn(self, invocation: Invocation) -> asyncio.subprocess.Process:
        """Start *invocation* with piped output. Raises OSError on failure."""
        env = os.environ.copy()
        env.update(invocation.env)
        kwargs: dict = dict(
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
            cwd=invocation.cwd,
            # own process group: signals reach the shell wrapper and borg
            start_new_session=_POSIX,
        )
        if invocation.shell:
            return await asyncio.create_subprocess_shell(
                invocation.command_line, **kwargs,
            )
        return await asyncio.create_subprocess_exec(*invocation.argv, **kwargs)

    # ── output pumping ────────────────────────────────────────────────

    def _emit(
        self,
        routing_id: str,
        text: str,
        stream: Literal["stdout", "stderr"],
        hints: list[str],
    ) -> None:
        if text:
            self._bus.publish(LogEvent(id=routing_id, text=text, stream=stream))
        for hint in hints:
            self._bus.publish(LogEvent(id=routing_id, text=hint, stream=stream))

    async def pump(
        self,
        reader: Optional[asyncio.StreamReader],
        routing_id: str,
        stream: Literal["stdout", "stderr"],
    ) -> None:
        """Forward *reader* chunk by chunk until EOF."""
        if reader is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        classifier = HintClassifier()
        while True:
            data = await reader.read(CHUNK_SIZE)
            if not data:
                break
            text = decoder.decode(data)
            if text:
                self._emit(routing_id, text, stream, classifier.feed(text))
        text = decoder.decode(b"", final=True)
        hints = classifier.feed(text) if text else []
        hints += classifier.flush()
        self._emit(routing_id, text, stream, hints)

    # ── public ────────────────────────────────────────────────────────

    async def run(
        self,
        invocation: Invocation,
        routing_id: str,
        on_output: OutputListener | None = None,
    ) -> CommandResult:
        """Run an already-resolved invocation to completion."""
        with self._bus.listening(routing_id, on_output):
            try:
                proc = await self.spawn(invocation)
            except OSError as exc:
                log.warning(
                    "exec.spawn_failed",
                    id=routing_id,
                    executable=invocation.executable,
                    error=str(exc),
                )
                return CommandResult(
                    success=False,
                    failure=FailureKind.spawn,
                    start_error=str(exc),
                )

            log.info(
                "exec.started",
                id=routing_id,
                pid=proc.pid,
                backend=invocation.backend.value,
            )
            try:
                await asyncio.gather(
                    self.pump(proc.stdout, routing_id, "stdout"),
                    self.pump(proc.stderr, routing_id, "stderr"),
                )
                rc = await proc.wait()
            except asyncio.CancelledError:
                signal_process(proc, kill=True)
                raise

        log.info("exec.finished", id=routing_id, rc=rc)
        if rc == 0:
            return CommandResult(success=True, exit_code=0)
        return CommandResult(
            success=False, exit_code=rc, failure=FailureKind.runtime,
        )

    async def execute(
        self,
        args: list[str],
        routing_id: str,
        overrides: CommandOverrides | None = None,
        on_output: OutputListener | None = None,
        *,
        binary: str | None = None,
        cwd: str | None = None,
        layer_user: str | None = None,
    ) -> CommandResult:
        """Resolve *args* on the configured backend and run them."""
        try:
            invocation = resolve(
                args,
                self._cfg,
                overrides=overrides,
                binary=binary,
                cwd=cwd,
                layer_user=layer_user,
            )
        except ResolutionError as exc:
            return CommandResult(
                success=False,
                failure=FailureKind.resolution,
                start_error=str(exc),
            )
        return await self.run(invocation, routing_id, on_output)


# Singleton
command_executor = CommandExecutor()
