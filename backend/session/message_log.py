"""
Message log entries and the recent-log window.

The session connector emits entries without bound; consumers that keep
history (the HUD bridge) hold only the most recent MESSAGE_LOG_WINDOW.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from constants import MESSAGE_LOG_WINDOW


class Role(str, Enum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


@dataclass(frozen=True)
class MessageLogEntry:
    """Append-only observation record."""
    role: Role
    text: str
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def system(cls, text: str) -> MessageLogEntry:
        return cls(role=Role.SYSTEM, text=text)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
        }


class RecentLog:
    """Bounded FIFO of the most recent entries (oldest dropped first)."""

    def __init__(self, maxlen: int = MESSAGE_LOG_WINDOW) -> None:
        if maxlen <= 0:
            raise ValueError("maxlen must be > 0")
        self._entries: deque[MessageLogEntry] = deque(maxlen=maxlen)

    def append(self, entry: MessageLogEntry) -> None:
        self._entries.append(entry)

    def snapshot(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
