"""
Session connector.

Responsibilities:
- Owns the single live session and the audio devices for it
- Drives ConnectionState (DISCONNECTED -> CONNECTING -> CONNECTED, ERROR)
- Wires capture tap -> outbound channel -> transport
- Wires transport -> inbound channel -> playback / tools / interruption / log
- Tears everything down in a fixed order

NOT responsible for:
- Wire formats (transport)
- Decoding audio, scheduling buffers (PlaybackScheduler)
- Tool semantics (ToolDispatcher)
- Rendering anything (UI callbacks are fire-and-forget)

Concurrency model:
- Everything runs on one asyncio loop.
- One sender task drains the outbound queue, so frames and tool results go
  out in the order they were produced.
- One consumer task drains the inbound queue, so server messages are applied
  strictly in delivery order.
- A generation counter is bumped by every connect and every teardown.
  Transport callbacks and queued items carry the generation they were
  created under; anything stale is dropped.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping
from uuid import uuid4

from audio.capture import AudioCaptureTap
from audio.codec import AudioDecodeError
from audio.devices import (
    InputDevice,
    OutputDevice,
    open_input_device,
    open_output_device,
)
from audio.frames import AudioFrame
from audio.playback import PlaybackScheduler
from config import AppConfig
from constants import (
    DEFAULT_LIVE_MODEL,
    DEFAULT_OWNER_NAME,
    DEFAULT_VOICE_NAME,
    LOG_TEXT_CLOSED,
    LOG_TEXT_CONNECTED,
    LOG_TEXT_DECODE_FAILED,
    LOG_TEXT_EXECUTING_TOOL,
    LOG_TEXT_GO_AWAY,
    LOG_TEXT_SETUP_FAILED,
    LOG_TEXT_TRANSPORT_ERROR,
)
from observability.logger import log_event
from observability.metrics import timed
from session.connection_status import ConnectionState
from session.events import (
    AudioFragment,
    Event,
    GoAway,
    InputTranscript,
    Interrupted,
    ModelText,
    ToolCallCancelled,
    ToolCallRequest,
    TurnComplete,
    parse_server_message,
)
from session.interruption import InterruptionController
from session.message_log import MessageLogEntry, Role
from session.persona import LanguageMode, build_system_instruction
from tools.declarations import TOOL_DECLARATIONS
from tools.dispatcher import ToolDispatcher, ToolResult
from tools.handlers import OpenAppSink
from transport.base import (
    LiveSession,
    LiveTransport,
    LiveTransportError,
    SessionConfig,
    TransportCallbacks,
)


InputFactory = Callable[[], Awaitable[InputDevice]]
OutputFactory = Callable[[], Awaitable[OutputDevice]]


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


def _noop(*_args: Any) -> None:
    return None


@dataclass(frozen=True)
class SessionCallbacks:
    """
    UI boundary. All four are fire-and-forget; an exception raised by any
    of them is logged and swallowed.
    """
    on_state_change: Callable[[ConnectionState], None] = _noop
    on_log: Callable[[MessageLogEntry], None] = _noop
    on_volume_change: Callable[[float], None] = _noop
    on_open_app: OpenAppSink = _noop


# ------------------------------------------------------------------
# Channel items
# ------------------------------------------------------------------

@dataclass(frozen=True)
class OutboundAudio:
    generation: int
    sequence_num: int
    pcm_bytes: bytes


@dataclass(frozen=True)
class OutboundToolResult:
    generation: int
    result: ToolResult


@dataclass(frozen=True)
class InboundMessage:
    generation: int
    payload: Mapping[str, Any] = field(default_factory=dict)


# ------------------------------------------------------------------
# SessionConnector
# ------------------------------------------------------------------

class SessionConnector:
    """
    One connector == at most one live session at a time.

    Reusable: after disconnect (or a failure) connect() may be called again.
    """

    def __init__(
        self,
        *,
        transport: LiveTransport,
        callbacks: SessionCallbacks | None = None,
        open_input: InputFactory | None = None,
        open_output: OutputFactory | None = None,
        model: str = DEFAULT_LIVE_MODEL,
        voice_name: str = DEFAULT_VOICE_NAME,
        owner_name: str = DEFAULT_OWNER_NAME,
    ) -> None:
        self._transport = transport
        self._callbacks = callbacks or SessionCallbacks()
        self._open_input = open_input or open_input_device
        self._open_output = open_output or open_output_device
        self._model = model
        self._voice_name = voice_name
        self._owner_name = owner_name

        self._state = ConnectionState.DISCONNECTED
        self._generation = 0
        self.session_id: str | None = None

        # Per-session resources (None while no session is live)
        self._session: LiveSession | None = None
        self._input: InputDevice | None = None
        self._output: OutputDevice | None = None
        self._capture: AudioCaptureTap | None = None
        self._scheduler: PlaybackScheduler | None = None
        self._interruption: InterruptionController | None = None
        self._dispatcher: ToolDispatcher | None = None

        self._outbound: asyncio.Queue[OutboundAudio | OutboundToolResult] | None = None
        self._inbound: asyncio.Queue[InboundMessage] | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._remote_end_task: asyncio.Task[None] | None = None

        self._pending_transcript: list[str] = []

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        transport: LiveTransport,
        callbacks: SessionCallbacks | None = None,
    ) -> SessionConnector:
        """Connector using the configured model, voice, owner and devices."""
        return cls(
            transport=transport,
            callbacks=callbacks,
            open_input=lambda: open_input_device(config.input_device),
            open_output=lambda: open_output_device(config.output_device),
            model=config.live_model,
            voice_name=config.live_voice,
            owner_name=config.owner_name,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def scheduler(self) -> PlaybackScheduler | None:
        return self._scheduler

    def build_session_config(self, language: LanguageMode) -> SessionConfig:
        return SessionConfig(
            model=self._model,
            voice_name=self._voice_name,
            system_instruction=build_system_instruction(
                language, owner_name=self._owner_name
            ),
            tools=TOOL_DECLARATIONS,
        )

    # ------------------------------------------------------------------
    # Public lifecycle
    # ------------------------------------------------------------------

    async def connect(self, language_mode: str | LanguageMode = LanguageMode.ENGLISH) -> None:
        """
        Open devices and the live session.

        Never raises for setup failures: they end in ERROR with a system
        log entry and every partially opened resource released.
        """
        await self._await_remote_end()

        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            log_event({
                "event_type": "CONNECT_IGNORED",
                "session_id": self.session_id,
                "state": self._state.value,
            })
            return

        language = LanguageMode.parse(language_mode)

        self._generation += 1
        gen = self._generation
        self.session_id = _new_session_id()
        self._pending_transcript.clear()

        log_event({
            "event_type": "SESSION_CONNECT_REQUESTED",
            "session_id": self.session_id,
            "language": language.value,
            "generation": gen,
        })
        self._set_state(ConnectionState.CONNECTING)

        try:
            with timed(
                "session_connect_latency",
                session_id=self.session_id,
                details={"language": language.value},
            ):
                await self._open_session(gen, language)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            if gen != self._generation:
                log_event({
                    "event_type": "CONNECT_SUPERSEDED",
                    "session_id": self.session_id,
                    "error": repr(exc),
                })
                return

            log_event({
                "event_type": "SESSION_SETUP_FAILED",
                "session_id": self.session_id,
                "error_type": type(exc).__name__,
                "error": str(exc),
            })
            await self._teardown(ConnectionState.ERROR)
            self._emit_log(MessageLogEntry.system(LOG_TEXT_SETUP_FAILED.format(reason=exc)))

    async def disconnect(self) -> None:
        """Idempotent; safe before connect and after failures. Ends DISCONNECTED."""
        log_event({
            "event_type": "SESSION_DISCONNECT_REQUESTED",
            "session_id": self.session_id,
            "state": self._state.value,
        })

        await self._await_remote_end()
        await self._teardown(ConnectionState.DISCONNECTED)

    async def _await_remote_end(self) -> None:
        """Let a teardown started by on_close/on_error finish before touching the session."""
        pending = self._remote_end_task
        if pending is not None and pending is not asyncio.current_task() and not pending.done():
            await asyncio.gather(pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def _open_session(self, gen: int, language: LanguageMode) -> None:
        # A teardown may run during any await below; it releases whatever is
        # already stored on self, so each newly opened resource is stored
        # only after the generation check.
        output = await self._open_output()
        if gen != self._generation:
            await output.close()
            return
        self._output = output

        input_device = await self._open_input()
        if gen != self._generation:
            await input_device.close()
            return
        self._input = input_device

        self._scheduler = PlaybackScheduler(
            output=output,
            on_volume_change=self._notify_volume,
            session_id=self.session_id,
        )
        self._interruption = InterruptionController(
            scheduler=self._scheduler,
            on_log=self._emit_log,
            session_id=self.session_id,
        )
        self._dispatcher = ToolDispatcher(
            on_open_app=self._notify_open_app,
            session_id=self.session_id,
        )
        self._outbound = asyncio.Queue()
        self._inbound = asyncio.Queue()

        session = await self._transport.connect(
            self.build_session_config(language),
            self._transport_callbacks(gen),
        )
        if gen != self._generation:
            await session.close()
            return
        self._session = session

        self._tasks = [
            asyncio.create_task(self._run_sender(gen, self._outbound)),
            asyncio.create_task(self._run_consumer(gen, self._inbound)),
        ]

        self._capture = AudioCaptureTap(
            device=input_device,
            submit=lambda frame, pcm: self._submit_frame(gen, frame, pcm),
            on_volume_change=self._notify_volume,
            session_id=self.session_id,
        )
        self._capture.start()

        log_event({
            "event_type": "SESSION_OPEN",
            "session_id": self.session_id,
            "model": self._model,
            "language": language.value,
        })

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def _teardown(self, final_state: ConnectionState) -> None:
        """
        Release everything in order:
        capture -> playback -> input device -> output device -> session.
        Safe to run repeatedly.
        """
        self._generation += 1

        capture, self._capture = self._capture, None
        if capture is not None:
            capture.stop()

        scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None:
            scheduler.flush_all()

        tasks, self._tasks = self._tasks, []
        current = asyncio.current_task()
        for task in tasks:
            if task is not current:
                task.cancel()
        if tasks:
            await asyncio.gather(*(t for t in tasks if t is not current), return_exceptions=True)

        input_device, self._input = self._input, None
        if input_device is not None:
            await self._close_quietly("input_device", input_device.close)

        output, self._output = self._output, None
        if output is not None:
            await self._close_quietly("output_device", output.close)

        session, self._session = self._session, None
        if session is not None:
            await self._close_quietly("session", session.close)

        self._interruption = None
        self._dispatcher = None
        self._outbound = None
        self._inbound = None
        self._pending_transcript.clear()

        log_event({
            "event_type": "SESSION_TEARDOWN",
            "session_id": self.session_id,
            "final_state": final_state.value,
        })
        self._set_state(final_state)

    async def _close_quietly(self, what: str, close: Callable[[], Awaitable[None]]) -> None:
        try:
            await close()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "RESOURCE_CLOSE_FAILED",
                "session_id": self.session_id,
                "resource": what,
                "error": repr(exc),
            })

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    def _transport_callbacks(self, gen: int) -> TransportCallbacks:
        return TransportCallbacks(
            on_open=lambda: self._on_open(gen),
            on_message=lambda payload: self._on_message(gen, payload),
            on_close=lambda reason: self._on_close(gen, reason),
            on_error=lambda exc: self._on_error(gen, exc),
        )

    def _on_open(self, gen: int) -> None:
        if gen != self._generation:
            return
        self._set_state(ConnectionState.CONNECTED)
        self._emit_log(MessageLogEntry.system(LOG_TEXT_CONNECTED.format(owner=self._owner_name)))

    def _on_message(self, gen: int, payload: Mapping[str, Any]) -> None:
        inbound = self._inbound
        if gen != self._generation or inbound is None:
            return
        inbound.put_nowait(InboundMessage(generation=gen, payload=payload))

    def _on_close(self, gen: int, reason: str | None) -> None:
        if gen != self._generation:
            return
        log_event({
            "event_type": "SESSION_REMOTE_CLOSED",
            "session_id": self.session_id,
            "reason": reason,
        })
        self._remote_end_task = asyncio.create_task(
            self._end_from_remote(gen, ConnectionState.DISCONNECTED, LOG_TEXT_CLOSED)
        )

    def _on_error(self, gen: int, exc: BaseException) -> None:
        if gen != self._generation:
            return
        log_event({
            "event_type": "SESSION_TRANSPORT_ERROR",
            "session_id": self.session_id,
            "error_type": type(exc).__name__,
            "error": str(exc),
        })
        self._set_state(ConnectionState.ERROR)
        self._emit_log(MessageLogEntry.system(LOG_TEXT_TRANSPORT_ERROR))
        self._remote_end_task = asyncio.create_task(
            self._end_from_remote(gen, ConnectionState.ERROR, None)
        )

    async def _end_from_remote(
        self,
        gen: int,
        final_state: ConnectionState,
        log_text: str | None,
    ) -> None:
        # Runs in its own task so the transport's receiver never awaits its
        # own cancellation.
        if gen != self._generation:
            return
        await self._teardown(final_state)
        if log_text is not None:
            self._emit_log(MessageLogEntry.system(log_text))

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _submit_frame(self, gen: int, frame: AudioFrame, pcm_bytes: bytes) -> None:
        outbound = self._outbound
        if gen != self._generation or outbound is None:
            return
        outbound.put_nowait(
            OutboundAudio(generation=gen, sequence_num=frame.sequence_num, pcm_bytes=pcm_bytes)
        )

    async def _run_sender(
        self,
        gen: int,
        queue: asyncio.Queue[OutboundAudio | OutboundToolResult],
    ) -> None:
        while True:
            item = await queue.get()
            session = self._session
            if item.generation != self._generation or gen != self._generation or session is None:
                continue

            try:
                if isinstance(item, OutboundAudio):
                    await session.send_realtime_input(item.pcm_bytes)
                else:
                    await session.send_tool_response(item.result)
            except LiveTransportError as exc:
                # The receiver reports the broken session through on_error/on_close.
                log_event({
                    "event_type": "OUTBOUND_SEND_FAILED",
                    "session_id": self.session_id,
                    "item": type(item).__name__,
                    "error": str(exc),
                })

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def _run_consumer(self, gen: int, queue: asyncio.Queue[InboundMessage]) -> None:
        while True:
            message = await queue.get()
            if message.generation != self._generation:
                continue

            try:
                events = parse_server_message(message.payload)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "INBOUND_PARSE_FAILED",
                    "session_id": self.session_id,
                    "error": repr(exc),
                })
                continue

            for event in events:
                if gen != self._generation:
                    break
                try:
                    self._apply(gen, event)
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    log_event({
                        "event_type": "INBOUND_EVENT_FAILED",
                        "session_id": self.session_id,
                        "inbound_event": event.event_type.value,
                        "error": repr(exc),
                    })

    def _apply(self, gen: int, event: Event) -> None:
        if isinstance(event, ModelText):
            self._emit_log(MessageLogEntry(role=Role.MODEL, text=event.text))

        elif isinstance(event, AudioFragment):
            self._play(event)

        elif isinstance(event, InputTranscript):
            self._pending_transcript.append(event.text)

        elif isinstance(event, Interrupted):
            if self._interruption is not None:
                self._interruption.handle()

        elif isinstance(event, TurnComplete):
            self._flush_transcript()

        elif isinstance(event, ToolCallRequest):
            self._run_tool(gen, event)

        elif isinstance(event, ToolCallCancelled):
            log_event({
                "event_type": "TOOL_CALL_CANCELLED",
                "session_id": self.session_id,
                "call_ids": list(event.call_ids),
            })

        elif isinstance(event, GoAway):
            self._emit_log(MessageLogEntry.system(LOG_TEXT_GO_AWAY.format(time_left=event.time_left)))

    def _play(self, event: AudioFragment) -> None:
        scheduler = self._scheduler
        if scheduler is None:
            return
        try:
            scheduler.play_fragment(event.data)
        except AudioDecodeError as exc:
            log_event({
                "event_type": "AUDIO_DECODE_FAILED",
                "session_id": self.session_id,
                "mime_type": event.mime_type,
                "error": str(exc),
            })
            self._emit_log(MessageLogEntry.system(LOG_TEXT_DECODE_FAILED))

    def _run_tool(self, gen: int, event: ToolCallRequest) -> None:
        dispatcher = self._dispatcher
        outbound = self._outbound
        if dispatcher is None or outbound is None:
            return

        self._emit_log(MessageLogEntry.system(LOG_TEXT_EXECUTING_TOOL.format(name=event.call.name)))
        result = dispatcher.dispatch(event.call)
        outbound.put_nowait(OutboundToolResult(generation=gen, result=result))

    def _flush_transcript(self) -> None:
        text = "".join(self._pending_transcript).strip()
        self._pending_transcript.clear()
        if text:
            self._emit_log(MessageLogEntry(role=Role.USER, text=text))

    # ------------------------------------------------------------------
    # UI notifications
    # ------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        previous = self._state
        self._state = state
        log_event({
            "event_type": "CONNECTION_STATE_CHANGED",
            "session_id": self.session_id,
            "from": previous.value,
            "to": state.value,
        })
        self._notify("on_state_change", self._callbacks.on_state_change, state)

    def _emit_log(self, entry: MessageLogEntry) -> None:
        self._notify("on_log", self._callbacks.on_log, entry)

    def _notify_volume(self, level: float) -> None:
        self._notify("on_volume_change", self._callbacks.on_volume_change, level)

    def _notify_open_app(self, app_name: str, content: str) -> None:
        self._notify("on_open_app", self._callbacks.on_open_app, app_name, content)

    def _notify(self, name: str, callback: Callable[..., Any], *args: Any) -> None:
        try:
            callback(*args)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "CALLBACK_ERROR",
                "session_id": self.session_id,
                "callback": name,
                "error": repr(exc),
            })
