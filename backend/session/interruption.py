"""
Barge-in handling.

On an interruption signal from the endpoint: flush all pending playback
and note it in the message log. The session itself is untouched and keeps
accepting fragments and tool calls.
"""

from __future__ import annotations

from typing import Callable

from audio.playback import PlaybackScheduler
from constants import LOG_TEXT_INTERRUPTED
from observability.logger import log_event
from session.message_log import MessageLogEntry


class InterruptionController:
    def __init__(
        self,
        *,
        scheduler: PlaybackScheduler,
        on_log: Callable[[MessageLogEntry], None],
        session_id: str | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._on_log = on_log
        self._session_id = session_id

    def handle(self) -> int:
        """Flush playback; returns how many buffers were stopped."""
        stopped = self._scheduler.flush_all()
        log_event({
            "event_type": "OUTPUT_INTERRUPTED",
            "session_id": self._session_id,
            "buffers_stopped": stopped,
        })
        self._on_log(MessageLogEntry.system(LOG_TEXT_INTERRUPTED))
        return stopped
