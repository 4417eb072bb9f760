"""
Inbound session events.

Rules:
- Events describe facts the live endpoint reported.
- Events carry data only (no behavior).
- parse_server_message() turns one raw server message into an ordered
  tuple of events; the connector applies them in exactly that order.

Order within one message:
  model turn parts (text and audio, in part order)
  -> input transcription
  -> interruption
  -> turn complete
  -> tool calls / tool call cancellations
  -> go-away notice
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from tools.dispatcher import ToolCall


class EventType(str, Enum):
    MODEL_TEXT = "MODEL_TEXT"
    AUDIO_FRAGMENT = "AUDIO_FRAGMENT"
    INPUT_TRANSCRIPT = "INPUT_TRANSCRIPT"
    INTERRUPTED = "INTERRUPTED"
    TURN_COMPLETE = "TURN_COMPLETE"
    TOOL_CALL = "TOOL_CALL"
    TOOL_CALL_CANCELLED = "TOOL_CALL_CANCELLED"
    GO_AWAY = "GO_AWAY"


@dataclass(frozen=True)
class Event:
    event_type: EventType


@dataclass(frozen=True)
class ModelText(Event):
    text: str


@dataclass(frozen=True)
class AudioFragment(Event):
    """PCM16LE audio as received: base64 text or raw bytes (decoded by the playback scheduler)."""
    data: str | bytes
    mime_type: str


@dataclass(frozen=True)
class InputTranscript(Event):
    """A fragment of the user's transcribed speech for the current turn."""
    text: str


@dataclass(frozen=True)
class Interrupted(Event):
    pass


@dataclass(frozen=True)
class TurnComplete(Event):
    pass


@dataclass(frozen=True)
class ToolCallRequest(Event):
    call: ToolCall


@dataclass(frozen=True)
class ToolCallCancelled(Event):
    call_ids: tuple[str, ...]


@dataclass(frozen=True)
class GoAway(Event):
    time_left: str


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _parse_parts(parts: Any) -> list[Event]:
    events: list[Event] = []
    if not isinstance(parts, list):
        return events

    for part in parts:
        if not isinstance(part, Mapping):
            continue

        text = part.get("text")
        if isinstance(text, str) and text:
            events.append(ModelText(event_type=EventType.MODEL_TEXT, text=text))

        inline = part.get("inlineData")
        if isinstance(inline, Mapping) and inline.get("data"):
            events.append(
                AudioFragment(
                    event_type=EventType.AUDIO_FRAGMENT,
                    data=inline["data"],
                    mime_type=str(inline.get("mimeType", "")),
                )
            )
    return events


def parse_server_message(payload: Mapping[str, Any]) -> tuple[Event, ...]:
    """
    Flatten one server message into ordered events.

    Unknown keys are ignored; a message with nothing actionable yields ().
    """
    events: list[Event] = []

    content = payload.get("serverContent")
    if isinstance(content, Mapping):
        model_turn = content.get("modelTurn")
        if isinstance(model_turn, Mapping):
            events.extend(_parse_parts(model_turn.get("parts")))

        transcription = content.get("inputTranscription")
        if isinstance(transcription, Mapping):
            text = transcription.get("text")
            if isinstance(text, str) and text:
                events.append(
                    InputTranscript(event_type=EventType.INPUT_TRANSCRIPT, text=text)
                )

        if content.get("interrupted"):
            events.append(Interrupted(event_type=EventType.INTERRUPTED))

        if content.get("turnComplete"):
            events.append(TurnComplete(event_type=EventType.TURN_COMPLETE))

    tool_call = payload.get("toolCall")
    if isinstance(tool_call, Mapping):
        for fc in _as_list(tool_call.get("functionCalls")):
            if not isinstance(fc, Mapping):
                continue
            args = fc.get("args")
            events.append(
                ToolCallRequest(
                    event_type=EventType.TOOL_CALL,
                    call=ToolCall(
                        call_id=str(fc.get("id", "")),
                        name=str(fc.get("name", "")),
                        args=dict(args) if isinstance(args, Mapping) else {},
                    ),
                )
            )

    cancellation = payload.get("toolCallCancellation")
    if isinstance(cancellation, Mapping):
        ids = tuple(str(i) for i in _as_list(cancellation.get("ids")))
        events.append(
            ToolCallCancelled(event_type=EventType.TOOL_CALL_CANCELLED, call_ids=ids)
        )

    go_away = payload.get("goAway")
    if isinstance(go_away, Mapping):
        events.append(
            GoAway(event_type=EventType.GO_AWAY, time_left=str(go_away.get("timeLeft", "")))
        )

    return tuple(events)
