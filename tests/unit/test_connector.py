# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import numpy as np
import pytest

import session.connector as connector_module
from audio.devices import AudioDeviceError
from constants import INPUT_FRAME_SAMPLES
from session.connection_status import ConnectionState
from session.connector import SessionCallbacks, SessionConnector
from session.message_log import Role
from session.persona import LANGUAGE_DIRECTIVES, LanguageMode
from transport.base import TransportRejectedError

from fakes import (
    FakeInputDevice,
    FakeOutputDevice,
    FakeTransport,
    Recorder,
    fragment,
    settle,
)


class Rig:
    def __init__(self, *, transport: FakeTransport | None = None) -> None:
        self.journal: list[str] = []
        self.input = FakeInputDevice(journal=self.journal)
        self.output = FakeOutputDevice(journal=self.journal)
        self.transport = transport or FakeTransport(journal=self.journal)
        self.ui = Recorder()
        self.connector = SessionConnector(
            transport=self.transport,
            callbacks=self.ui.callbacks(),
            open_input=self._open_input,
            open_output=self._open_output,
            owner_name="Asad",
        )

    async def _open_input(self) -> FakeInputDevice:
        return self.input

    async def _open_output(self) -> FakeOutputDevice:
        return self.output

    @property
    def session(self):  # type: ignore[no-untyped-def]
        return self.transport.sessions[-1]

    async def deliver(self, payload: dict) -> None:  # type: ignore[type-arg]
        self.transport.last_callbacks.on_message(payload)
        await settle()


def _audio_message(*datas: str) -> dict:  # type: ignore[type-arg]
    return {
        "serverContent": {
            "modelTurn": {
                "parts": [
                    {"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": d}} for d in datas
                ],
            },
        },
    }


# ------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------

def test_urdu_connect_reaches_connected_with_urdu_persona() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect("urdu")
        return rig

    rig = asyncio.run(scenario())

    assert rig.ui.states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
    config = rig.transport.configs[0]
    assert LANGUAGE_DIRECTIVES[LanguageMode.URDU] in config.system_instruction
    assert LANGUAGE_DIRECTIVES[LanguageMode.HINDI] not in config.system_instruction
    assert config.response_modality == "AUDIO"
    assert config.input_transcription
    assert len(config.tools) == 5
    assert rig.ui.texts == ["Secure connection established. Welcome back, Asad."]
    assert rig.input.started == 1


def test_microphone_frames_reach_the_session_in_order() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect("english")
        for level in (0.1, 0.2, 0.3):
            rig.input.emit(np.full(INPUT_FRAME_SAMPLES, level, dtype=np.float32))
        await settle()
        return rig

    rig = asyncio.run(scenario())

    sent = rig.session.sent_audio
    assert len(sent) == 3
    first_samples = [np.frombuffer(pcm, dtype="<i2")[0] for pcm in sent]
    assert first_samples == sorted(first_samples)
    assert len(rig.ui.volumes) == 3


def test_disconnect_before_connect_and_twice_is_safe() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.disconnect()
        await rig.connector.connect()
        await rig.connector.disconnect()
        await rig.connector.disconnect()
        return rig

    rig = asyncio.run(scenario())

    assert rig.connector.state is ConnectionState.DISCONNECTED
    assert rig.ui.states == [
        ConnectionState.CONNECTING,
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
    ]
    assert rig.input.closed == 1
    assert rig.output.closed == 1
    assert rig.session.closed == 1


def test_teardown_order() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.deliver(_audio_message(fragment(2400)))
        await rig.connector.disconnect()
        return rig

    rig = asyncio.run(scenario())

    assert rig.journal == [
        "input.stop",
        "handle.stop",
        "input.close",
        "output.close",
        "session.close",
    ]


def test_connect_while_connected_is_ignored() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.connector.connect("hindi")
        return rig

    rig = asyncio.run(scenario())

    assert len(rig.transport.configs) == 1
    assert rig.connector.state is ConnectionState.CONNECTED


def test_reconnect_after_disconnect() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.connector.disconnect()
        await rig.connector.connect("hindi")
        return rig

    rig = asyncio.run(scenario())

    assert rig.connector.state is ConnectionState.CONNECTED
    assert len(rig.transport.sessions) == 2
    assert LANGUAGE_DIRECTIVES[LanguageMode.HINDI] in rig.transport.configs[1].system_instruction


# ------------------------------------------------------------------
# Setup failures
# ------------------------------------------------------------------

def test_transport_rejection_ends_in_error_with_resources_released() -> None:
    async def scenario() -> Rig:
        rig = Rig(transport=FakeTransport(reject=TransportRejectedError("bad key")))
        await rig.connector.connect()
        return rig

    rig = asyncio.run(scenario())

    assert rig.ui.states == [ConnectionState.CONNECTING, ConnectionState.ERROR]
    assert rig.ui.texts == ["Connection failed: bad key"]
    assert rig.input.closed == 1
    assert rig.output.closed == 1
    assert rig.input.started == 0


def test_microphone_failure_ends_in_error() -> None:
    async def scenario() -> Rig:
        rig = Rig()

        async def no_mic() -> FakeInputDevice:
            raise AudioDeviceError("microphone unavailable: denied")

        rig.connector = SessionConnector(
            transport=rig.transport,
            callbacks=rig.ui.callbacks(),
            open_input=no_mic,
            open_output=rig._open_output,  # pylint: disable=protected-access
        )
        await rig.connector.connect()
        return rig

    rig = asyncio.run(scenario())

    assert rig.connector.state is ConnectionState.ERROR
    assert not rig.transport.configs
    assert rig.output.closed == 1
    assert rig.ui.texts[-1].startswith("Connection failed: microphone unavailable")


def test_connect_after_error_is_allowed() -> None:
    async def scenario() -> Rig:
        rig = Rig(transport=FakeTransport(reject=TransportRejectedError("down")))
        await rig.connector.connect()
        rig.transport.reject = None
        await rig.connector.connect()
        return rig

    rig = asyncio.run(scenario())

    assert rig.connector.state is ConnectionState.CONNECTED


def test_connect_right_after_transport_error_releases_the_failed_session() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        rig.transport.last_callbacks.on_error(ConnectionResetError("link lost"))
        await rig.connector.connect()
        await settle()
        return rig

    rig = asyncio.run(scenario())

    first, second = rig.transport.sessions
    assert first.closed == 1
    assert second.closed == 0
    assert rig.input.closed == 1 and rig.output.closed == 1
    assert rig.input.started == 2
    assert rig.connector.state is ConnectionState.CONNECTED


# ------------------------------------------------------------------
# Inbound handling
# ------------------------------------------------------------------

def test_audio_parts_are_all_scheduled_gaplessly() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.deliver(_audio_message(fragment(2400), fragment(2400)))
        await rig.deliver(_audio_message(fragment(4800)))
        return rig

    rig = asyncio.run(scenario())

    assert [round(s.start_time, 6) for s in rig.output.scheduled] == [0.0, 0.1, 0.2]


def test_malformed_fragment_is_dropped_and_session_continues() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.deliver(_audio_message("%%%not-audio%%%", fragment(2400)))
        return rig

    rig = asyncio.run(scenario())

    assert rig.connector.state is ConnectionState.CONNECTED
    assert len(rig.output.scheduled) == 1
    assert "Dropped malformed audio fragment." in rig.ui.texts


def test_non_text_audio_payload_is_dropped_like_bad_base64() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.deliver(_audio_message(123, fragment(2400)))  # type: ignore[arg-type]
        return rig

    rig = asyncio.run(scenario())

    assert rig.connector.state is ConnectionState.CONNECTED
    assert len(rig.output.scheduled) == 1
    assert "Dropped malformed audio fragment." in rig.ui.texts


def test_tool_call_with_non_object_args_still_answers_and_audio_keeps_flowing() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.deliver({
            "toolCall": {"functionCalls": [{"id": "call-1", "name": "getSystemStatus", "args": "oops"}]},
        })
        await rig.deliver(_audio_message(fragment(2400)))
        return rig

    rig = asyncio.run(scenario())

    assert [r.call_id for r in rig.session.sent_results] == ["call-1"]
    assert len(rig.output.scheduled) == 1
    assert rig.connector.state is ConnectionState.CONNECTED


def test_unparseable_message_is_skipped_and_consumer_survives(monkeypatch: pytest.MonkeyPatch) -> None:
    real_parse = connector_module.parse_server_message
    calls = {"n": 0}

    def flaky_parse(payload):  # type: ignore[no-untyped-def]
        calls["n"] += 1
        if calls["n"] == 1:
            raise ValueError("bad message")
        return real_parse(payload)

    monkeypatch.setattr(connector_module, "parse_server_message", flaky_parse)

    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.deliver(_audio_message(fragment(2400)))
        await rig.deliver(_audio_message(fragment(2400)))
        return rig

    rig = asyncio.run(scenario())

    assert calls["n"] == 2
    assert len(rig.output.scheduled) == 1
    assert rig.connector.state is ConnectionState.CONNECTED


def test_interruption_flushes_playback_and_stays_connected() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.deliver(_audio_message(fragment(2400), fragment(2400)))
        await rig.deliver({"serverContent": {"interrupted": True}})
        return rig

    rig = asyncio.run(scenario())

    assert all(s.handle.stopped for s in rig.output.scheduled)
    assert rig.connector.scheduler is not None
    assert len(rig.connector.scheduler) == 0
    assert rig.connector.scheduler.timeline.cursor == 0.0
    assert rig.ui.texts[-1] == "Output interrupted."
    assert rig.connector.state is ConnectionState.CONNECTED


def test_tool_call_open_app_round_trip() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.deliver({
            "toolCall": {
                "functionCalls": [
                    {"id": "call-7", "name": "openApp", "args": {"appName": "notepad", "content": "hello"}},
                    {"id": "call-8", "name": "selfDestruct", "args": {}},
                ],
            },
        })
        return rig

    rig = asyncio.run(scenario())

    assert rig.ui.apps == [("notepad", "hello")]
    results = rig.session.sent_results
    assert [r.call_id for r in results] == ["call-7", "call-8"]
    assert results[0].result == {"status": "opened", "app": "notepad"}
    assert results[1].result == {"error": "Unknown tool"}
    assert "Executing: openApp" in rig.ui.texts


def test_model_text_and_user_transcript_are_logged() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        await rig.deliver({"serverContent": {"inputTranscription": {"text": "What's the "}}})
        await rig.deliver({"serverContent": {"inputTranscription": {"text": "weather?"}}})
        await rig.deliver({"serverContent": {"modelTurn": {"parts": [{"text": "Clear skies."}]}}})
        await rig.deliver({"serverContent": {"turnComplete": True}})
        return rig

    rig = asyncio.run(scenario())

    model = [e for e in rig.ui.logs if e.role is Role.MODEL]
    user = [e for e in rig.ui.logs if e.role is Role.USER]
    assert [e.text for e in model] == ["Clear skies."]
    assert [e.text for e in user] == ["What's the weather?"]


# ------------------------------------------------------------------
# Remote end / stale callbacks
# ------------------------------------------------------------------

def test_remote_close_disconnects() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        rig.transport.last_callbacks.on_close("remote_closed")
        await settle()
        return rig

    rig = asyncio.run(scenario())

    assert rig.connector.state is ConnectionState.DISCONNECTED
    assert rig.ui.texts[-1] == "System disengaged."
    assert rig.input.closed == 1 and rig.output.closed == 1


def test_transport_error_tears_down_and_stays_in_error() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        rig.transport.last_callbacks.on_error(ConnectionResetError("link lost"))
        await settle()
        return rig

    rig = asyncio.run(scenario())

    assert rig.connector.state is ConnectionState.ERROR
    assert "Critical System Failure." in rig.ui.texts
    assert rig.journal[-1] == "session.close"

    asyncio.run(rig.connector.disconnect())
    assert rig.connector.state is ConnectionState.DISCONNECTED


def test_callbacks_from_a_previous_session_are_ignored() -> None:
    async def scenario() -> Rig:
        rig = Rig()
        await rig.connector.connect()
        stale = rig.transport.last_callbacks
        await rig.connector.disconnect()
        await rig.connector.connect()

        stale.on_message(_audio_message(fragment(2400)))
        stale.on_close("late")
        stale.on_error(RuntimeError("late"))
        await settle()
        return rig

    rig = asyncio.run(scenario())

    assert rig.connector.state is ConnectionState.CONNECTED
    assert not rig.output.scheduled
    assert "System disengaged." not in rig.ui.texts


def test_raising_ui_callback_does_not_break_the_session() -> None:
    def boom(*_args: object) -> None:
        raise RuntimeError("ui crashed")

    async def scenario() -> SessionConnector:
        rig = Rig()
        connector = SessionConnector(
            transport=rig.transport,
            callbacks=SessionCallbacks(on_state_change=boom, on_log=boom),
            open_input=rig._open_input,  # pylint: disable=protected-access
            open_output=rig._open_output,  # pylint: disable=protected-access
        )
        await connector.connect()
        return connector

    assert asyncio.run(scenario()).state is ConnectionState.CONNECTED
