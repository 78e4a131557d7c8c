"""Fire-and-forget event notifications.

The engine reports milestones (export started/completed, manifest loaded,
entry parsed/migrated/committed, session ready/finished) on an `EventBus`.
Listeners are host-application concerns such as telemetry or toasts; a
listener that raises is logged and otherwise ignored so it can never break
an export or an import.
"""

from __future__ import annotations

from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field

from mindflow.logging import setup_logging

EventName = Literal[
    "export.started",
    "export.completed",
    "import.manifest_loaded",
    "import.entry_parsed",
    "import.migration_applied",
    "import.session_ready",
    "import.entry_committed",
    "import.session_finished",
]


class EngineEvent(BaseModel):
    """One notification delivered to listeners."""

    model_config = ConfigDict(frozen=True)

    name: str
    payload: dict[str, Any] = Field(default_factory=dict)


Handler = Callable[[EngineEvent], None]


class EventBus:
    """Minimal synchronous publish/subscribe bus."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Handler]] = {}
        self.logger = setup_logging()

    def on(self, name: EventName, handler: Handler) -> Callable[[], None]:
        """Subscribe to an event. Returns a function that unsubscribes."""
        self._listeners.setdefault(name, []).append(handler)
        return lambda: self.off(name, handler)

    def off(self, name: EventName, handler: Handler) -> None:
        handlers = self._listeners.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, name: EventName, **payload: Any) -> None:
        event = EngineEvent(name=name, payload=payload)
        for handler in list(self._listeners.get(name, [])):
            try:
                handler(event)
            except Exception as e:
                self.logger.warning(
                    {
                        "message": f"Event listener failed for {name}",
                        "event": name,
                        "error": str(e),
                    },
                    pprint=True,
                )
