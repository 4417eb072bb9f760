"""
Gemini Live transport built on the google-genai SDK.

Core model:
- One SDK live session per connect(); the SDK performs the setup
  handshake and returns only once the endpoint confirmed it.
- The session's async context is held open on an AsyncExitStack until
  close().
- A receiver task drains session.receive() and hands every server
  message to on_message() as a camelCase dict, in arrival order.
  receive() ends after each turn, so the task loops over it.

Design constraints:
- No session logic: this module never interprets server content.
- After close() no callback fires.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from google import genai
from google.genai import types as genai_types
from websockets.exceptions import ConnectionClosedOK

from constants import INPUT_MIME_TYPE, LIVE_SETUP_TIMEOUT_S
from observability.logger import log_event
from tools.dispatcher import ToolResult
from transport.base import (
    LiveTransportError,
    SessionConfig,
    TransportCallbacks,
    TransportRejectedError,
)


# ---------------------------------------------------------------------
# SDK shapes
# ---------------------------------------------------------------------

def build_live_config(config: SessionConfig) -> genai_types.LiveConnectConfig:
    """Connect-time config: modality, voice, persona, tools, transcription."""
    declarations = [
        genai_types.FunctionDeclaration.model_validate(t.to_wire())
        for t in config.tools
    ]

    return genai_types.LiveConnectConfig(
        response_modalities=[genai_types.Modality(config.response_modality)],
        speech_config=genai_types.SpeechConfig(
            voice_config=genai_types.VoiceConfig(
                prebuilt_voice_config=genai_types.PrebuiltVoiceConfig(
                    voice_name=config.voice_name,
                ),
            ),
        ),
        system_instruction=genai_types.Content(
            parts=[genai_types.Part(text=config.system_instruction)],
        ),
        tools=[genai_types.Tool(function_declarations=declarations)],
        input_audio_transcription=(
            genai_types.AudioTranscriptionConfig() if config.input_transcription else None
        ),
    )


def server_message_to_dict(message: genai_types.LiveServerMessage) -> dict[str, Any]:
    """
    Wire-shaped view of one SDK message.

    Python-mode dump keeps inline audio as raw bytes; the playback path
    accepts those as well as base64 text.
    """
    return message.model_dump(mode="python", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------

class GeminiLiveSession:
    """An open live session; created only by GeminiLiveTransport.connect()."""

    def __init__(
        self,
        session: Any,
        stack: contextlib.AsyncExitStack,
        callbacks: TransportCallbacks,
    ) -> None:
        self._session = session
        self._stack = stack
        self._callbacks = callbacks
        self._recv_task: asyncio.Task[None] | None = None
        self._closing = False

    def start_receiving(self) -> None:
        self._recv_task = asyncio.create_task(self._recv_loop())

    async def send_realtime_input(self, pcm_bytes: bytes) -> None:
        self._check_open()
        try:
            await self._session.send_realtime_input(
                audio=genai_types.Blob(data=pcm_bytes, mime_type=INPUT_MIME_TYPE),
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise LiveTransportError(f"live_send_audio_failed: {e!r}") from e

    async def send_tool_response(self, result: ToolResult) -> None:
        self._check_open()
        try:
            await self._session.send_tool_response(
                function_responses=[genai_types.FunctionResponse(**result.to_wire())],
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise LiveTransportError(f"live_send_tool_response_failed: {e!r}") from e

    async def close(self) -> None:
        """Idempotent; silences callbacks before leaving the SDK session."""
        if self._closing:
            return
        self._closing = True

        task = self._recv_task
        self._recv_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        try:
            await self._stack.aclose()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({"event_type": "LIVE_SESSION_CLOSE_FAILED", "error": repr(e)})

    def _check_open(self) -> None:
        if self._closing:
            raise LiveTransportError("session is closed")

    async def _recv_loop(self) -> None:
        try:
            while not self._closing:
                async for message in self._session.receive():
                    if self._closing:
                        return
                    self._callbacks.on_message(server_message_to_dict(message))

        except asyncio.CancelledError:
            return
        except ConnectionClosedOK:
            pass
        except Exception as e:  # pylint: disable=broad-exception-caught
            if not self._closing:
                self._callbacks.on_error(e)
            return

        if not self._closing:
            self._callbacks.on_close("remote_closed")


# ---------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------

class GeminiLiveTransport:
    """Opens GeminiLiveSession instances through a genai.Client."""

    def __init__(
        self,
        *,
        api_key: str | None,
        client: Any = None,
        setup_timeout_s: float = LIVE_SETUP_TIMEOUT_S,
    ) -> None:
        self._api_key = api_key
        self._client = client
        self._setup_timeout_s = setup_timeout_s

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def connect(
        self,
        config: SessionConfig,
        callbacks: TransportCallbacks,
    ) -> GeminiLiveSession:
        """
        Open a live session and wait for the endpoint to confirm setup.

        Raises:
            TransportRejectedError if the key is missing, the client cannot
            be built, or the session is not confirmed in time.
        """
        if not self._api_key:
            raise TransportRejectedError("GEMINI_API_KEY missing")

        stack = contextlib.AsyncExitStack()
        try:
            live = self._get_client().aio.live.connect(
                model=config.model,
                config=build_live_config(config),
            )
            sdk_session = await asyncio.wait_for(
                stack.enter_async_context(live),
                timeout=self._setup_timeout_s,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            await stack.aclose()
            raise TransportRejectedError(f"live_setup_failed: {e!r}") from e

        log_event({"event_type": "LIVE_SETUP_COMPLETE", "model": config.model})

        session = GeminiLiveSession(sdk_session, stack, callbacks)
        callbacks.on_open()
        session.start_receiving()
        return session
