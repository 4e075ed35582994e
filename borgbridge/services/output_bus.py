"""Process-wide output routing.

Every spawned process publishes its output as :class:`LogEvent` tagged with a
routing id; listeners subscribe per id and only ever see their own events.
Mount exits go out on a separate channel.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

from borgbridge.models.commands import LogEvent, MountExitEvent
from borgbridge.utils.logging import get_logger

log = get_logger(__name__)

OutputListener = Callable[[LogEvent], None]
ExitListener = Callable[[MountExitEvent], None]


class OutputBus:
    """Routing-id keyed fan-out of output and mount-exit events."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[OutputListener]] = {}
        self._exit_listeners: list[ExitListener] = []

    # ── output events ─────────────────────────────────────────────────

    def subscribe(self, routing_id: str, listener: OutputListener) -> None:
        self._listeners.setdefault(routing_id, []).append(listener)

    def unsubscribe(self, routing_id: str, listener: OutputListener) -> None:
        listeners = self._listeners.get(routing_id)
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            pass
        if not listeners:
            del self._listeners[routing_id]

    @contextmanager
    def listening(
        self, routing_id: str, listener: OutputListener | None,
    ) -> Iterator[None]:
        """Subscribe *listener* for the duration of the block (no-op if None)."""
        if listener is None:
            yield
            return
        self.subscribe(routing_id, listener)
        try:
            yield
        finally:
            self.unsubscribe(routing_id, listener)

    def publish(self, event: LogEvent) -> None:
        for listener in list(self._listeners.get(event.id, ())):
            try:
                listener(event)
            except Exception as exc:
                log.warning("bus.listener_failed", id=event.id, error=str(exc))

    def listener_count(self, routing_id: str | None = None) -> int:
        if routing_id is not None:
            return len(self._listeners.get(routing_id, ()))
        return sum(len(v) for v in self._listeners.values())

    # ── mount exits ───────────────────────────────────────────────────

    def subscribe_exits(self, listener: ExitListener) -> None:
        self._exit_listeners.append(listener)

    def unsubscribe_exits(self, listener: ExitListener) -> None:
        try:
            self._exit_listeners.remove(listener)
        except ValueError:
            pass

    def publish_exit(self, event: MountExitEvent) -> None:
        for listener in list(self._exit_listeners):
            try:
                listener(event)
            except Exception as exc:
                log.warning(
                    "bus.exit_listener_failed",
                    mount_id=event.mount_id,
                    error=str(exc),
                )


# Singleton
output_bus = OutputBus()
