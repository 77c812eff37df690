"""Wallet notifications and the transactional journal that buffers them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol


logger = logging.getLogger(__name__)


class EventType(str, Enum):
    OWNER_ADDED = "owner_added"
    THRESHOLD_CHANGED = "threshold_changed"
    WALLET_SETUP = "wallet_setup"
    TOKEN_APPROVED = "token_approved"
    INTENT_CREATED = "intent_created"
    INTENT_EXECUTED = "intent_executed"
    SETTLER_APPROVED = "settler_approved"


@dataclass
class Event:
    """A single notification emitted by a contract."""

    event_type: EventType
    contract: str
    timestamp: int
    args: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type.value,
            "contract": self.contract,
            "timestamp": self.timestamp,
            "args": {k: _jsonable(v) for k, v in self.args.items()},
        }


class EventSink(Protocol):
    def record(self, event: Event) -> None: ...


Emitter = Callable[..., Event]


class EventBuffer:
    """Holds committed events until the state they describe has been persisted."""

    def __init__(self) -> None:
        self._events: list[Event] = []

    def record(self, event: Event) -> None:
        self._events.append(event)

    def release(self, *sinks: EventSink) -> int:
        released, self._events = self._events, []
        for event in released:
            for sink in sinks:
                sink.record(event)
        return len(released)


class EventJournal:
    """
    Buffers events raised inside a transaction.

    Pending events are discarded on rollback and handed to sinks only when the
    outermost transaction commits, so a failed operation emits nothing.
    """

    def __init__(self) -> None:
        self._pending: list[Event] = []
        self._committed: list[Event] = []
        self._sinks: list[EventSink] = []

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def emit(self, event: Event) -> Event:
        self._pending.append(event)
        return event

    def mark(self) -> int:
        return len(self._pending)

    def rollback(self, mark: int) -> None:
        del self._pending[mark:]

    def commit(self) -> list[Event]:
        released, self._pending = self._pending, []
        self._committed.extend(released)
        if released:
            logger.debug("Committing %d event(s) to %d sink(s)", len(released), len(self._sinks))
        for event in released:
            for sink in self._sinks:
                sink.record(event)
        return released

    @property
    def pending(self) -> list[Event]:
        return list(self._pending)

    @property
    def events(self) -> list[Event]:
        return list(self._committed)

    def events_of(self, event_type: EventType, contract: Optional[str] = None) -> list[Event]:
        return [
            e
            for e in self._committed
            if e.event_type == event_type and (contract is None or e.contract == contract)
        ]


def _jsonable(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value
