"""
Duplex live-session transport contract.

The session connector is written against these shapes only; any transport
(real endpoint, test fake) that satisfies them can carry a session.

Callback contract:
- on_open(): the endpoint confirmed the session; called before connect()
  returns
- on_message(payload): one decoded server message, in delivery order
- on_close(reason): the endpoint closed the session normally
- on_error(exc): the session failed mid-flight
Callbacks run on the event loop and must not block.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

from tools.declarations import ToolDeclaration
from tools.dispatcher import ToolResult


class LiveTransportError(Exception):
    """Base class for transport failures."""


class TransportRejectedError(LiveTransportError):
    """The endpoint refused or never confirmed the session (setup failure)."""


@dataclass(frozen=True)
class SessionConfig:
    """Negotiated configuration for one live session."""
    model: str
    voice_name: str
    system_instruction: str
    tools: tuple[ToolDeclaration, ...]
    response_modality: str = "AUDIO"
    input_transcription: bool = True


@dataclass(frozen=True)
class TransportCallbacks:
    on_open: Callable[[], None]
    on_message: Callable[[Mapping[str, Any]], None]
    on_close: Callable[[str | None], None]
    on_error: Callable[[BaseException], None]


class LiveSession(Protocol):
    async def send_realtime_input(self, pcm_bytes: bytes) -> None: ...

    async def send_tool_response(self, result: ToolResult) -> None: ...

    async def close(self) -> None: ...


class LiveTransport(Protocol):
    async def connect(
        self,
        config: SessionConfig,
        callbacks: TransportCallbacks,
    ) -> LiveSession: ...
