"""State-change and toast notifications emitted to the UI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union


logger = logging.getLogger(__name__)

STATE_CHANNEL = "state"
TOAST_CHANNEL = "toast"

ConfirmCallback = Callable[[str], Union[bool, Awaitable[bool]]]


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class ControllerEvent:
    """One notification delivered to the dispatch sink."""

    channel: str
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    sent_at: str = field(default_factory=_utc_iso)


Dispatch = Callable[[ControllerEvent], None]


class RecordingDispatcher:
    """Dispatch sink that keeps every event; used by the CLI and tests."""

    def __init__(self) -> None:
        self.events: List[ControllerEvent] = []

    def __call__(self, event: ControllerEvent) -> None:
        self.events.append(event)

    def toasts(self) -> List[str]:
        return [str(item.payload.get("message", "")) for item in self.events if item.channel == TOAST_CHANNEL]

    def states(self, name: Optional[str] = None) -> List[Any]:
        return [
            item.payload.get("value")
            for item in self.events
            if item.channel == STATE_CHANNEL and (name is None or item.name == name)
        ]

    def clear(self) -> None:
        self.events.clear()


class Notifier:
    """Wraps the dispatch sink with state and toast helpers."""

    def __init__(self, dispatch: Optional[Dispatch] = None) -> None:
        self._dispatch = dispatch or RecordingDispatcher()

    def state(self, name: str, value: Any) -> None:
        self._dispatch(ControllerEvent(channel=STATE_CHANNEL, name=name, payload={"value": value}))

    def toast(self, message: str, *, level: str = "info") -> None:
        log = logger.warning if level == "error" else logger.info
        log("toast: %s", message)
        self._dispatch(
            ControllerEvent(channel=TOAST_CHANNEL, name=level, payload={"message": str(message), "level": level})
        )


async def ask(confirm: Optional[ConfirmCallback], prompt: str) -> bool:
    """Run a blocking yes/no confirmation; sync or async callables both work."""
    if confirm is None:
        return False
    answer = confirm(prompt)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)
