"""
Issuance Controller - Notifications

Append-only log of registry and issuance notifications. Entries are an audit
trail for observers; nothing in the controller reads them back to make a
decision.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class IssuanceEventType(Enum):
    """Notification kinds emitted by the controller."""
    ISSUER_AUTHORIZED = "IssuerAuthorized"
    ISSUER_DEAUTHORIZED = "IssuerDeauthorized"
    ISSUER_AUTHORIZATION_TRANSFERRED = "IssuerAuthorizationTransferred"
    ISSUER_ACTIVITY = "IssuerActivity"


@dataclass
class IssuanceEvent:
    """One notification entry."""
    sequence: int
    event_type: IssuanceEventType
    block: int
    data: dict[str, Any]
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "event_type": self.event_type.value,
            "block": self.block,
            "data": dict(self.data),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IssuanceEvent":
        return cls(
            sequence=data["sequence"],
            event_type=IssuanceEventType(data["event_type"]),
            block=data["block"],
            data=dict(data.get("data", {})),
            timestamp=data.get("timestamp", ""),
        )


class EventLog:
    """
    Append-only notification log.

    ``mark()`` and ``truncate()`` let a failed operation discard the entries
    it emitted before aborting.
    """

    def __init__(self):
        self._events: list[IssuanceEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def emit(self, event_type: IssuanceEventType, block: int, **data: Any) -> IssuanceEvent:
        """Append a notification and return it."""
        event = IssuanceEvent(
            sequence=len(self._events) + 1,
            event_type=event_type,
            block=block,
            data=data,
        )
        self._events.append(event)
        return event

    def entries(
        self,
        limit: int | None = None,
        event_type: IssuanceEventType | None = None
    ) -> list[IssuanceEvent]:
        """
        Return the most recent notifications, oldest first.

        Args:
            limit: Maximum number of entries to return
            event_type: Only return entries of this kind
        """
        events = self._events
        if event_type is not None:
            events = [e for e in events if e.event_type == event_type]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return list(events)

    def mark(self) -> int:
        return len(self._events)

    def truncate(self, mark: int) -> None:
        """Drop every entry emitted after ``mark``."""
        del self._events[mark:]

    def to_dict(self) -> list[dict[str, Any]]:
        return [event.to_dict() for event in self._events]

    @classmethod
    def from_dict(cls, data: list[dict[str, Any]]) -> "EventLog":
        log = cls()
        log._events = [IssuanceEvent.from_dict(item) for item in data]
        return log
