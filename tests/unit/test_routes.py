# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any, Callable

from fastapi.testclient import TestClient

from server.app import create_app
from session.connector import SessionCallbacks, SessionConnector

from fakes import FakeInputDevice, FakeOutputDevice, FakeSession, FakeTransport, make_config


def _app(make_transport: Callable[[], FakeTransport] = FakeTransport) -> Any:
    def factory(callbacks: SessionCallbacks) -> SessionConnector:
        async def open_input() -> FakeInputDevice:
            return FakeInputDevice()

        async def open_output() -> FakeOutputDevice:
            return FakeOutputDevice()

        return SessionConnector(
            transport=make_transport(),
            callbacks=callbacks,
            open_input=open_input,
            open_output=open_output,
            owner_name="Asad",
        )

    return create_app(make_config(), connector_factory=factory)


def test_health() -> None:
    with TestClient(_app()) as client:
        assert client.get("/health").json() == {"status": "ok"}


def test_hud_connect_and_disconnect() -> None:
    with TestClient(_app()) as client:
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json() == {"type": "LOG_HISTORY", "entries": []}
            assert ws.receive_json() == {"type": "STATE", "state": "DISCONNECTED"}

            ws.send_json({"type": "CONNECT", "language": "urdu"})
            assert ws.receive_json() == {"type": "STATE", "state": "CONNECTING"}
            assert ws.receive_json() == {"type": "STATE", "state": "CONNECTED"}

            log = ws.receive_json()
            assert log["type"] == "LOG"
            assert log["entry"]["role"] == "system"
            assert log["entry"]["text"] == "Secure connection established. Welcome back, Asad."

            ws.send_json({"type": "DISCONNECT"})
            assert ws.receive_json() == {"type": "STATE", "state": "DISCONNECTED"}


def test_recent_log_is_replayed_to_the_next_hud() -> None:
    app = _app()
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.receive_json()
            ws.send_json({"type": "CONNECT"})
            for _ in range(3):
                ws.receive_json()

        with client.websocket_connect("/ws") as ws:
            history = ws.receive_json()

    assert history["type"] == "LOG_HISTORY"
    assert [e["text"] for e in history["entries"]][:1] == [
        "Secure connection established. Welcome back, Asad."
    ]


def test_unknown_hud_message_is_reported() -> None:
    with TestClient(_app()) as client:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.receive_json()

            ws.send_text("not json")

            assert ws.receive_json() == {"type": "ERROR", "message": "unknown message type"}


class SlowTransport(FakeTransport):
    instances: list["SlowTransport"] = []

    def __init__(self) -> None:
        super().__init__()
        self.finished = 0
        SlowTransport.instances.append(self)

    async def connect(self, config, callbacks) -> FakeSession:  # type: ignore[no-untyped-def]
        await asyncio.sleep(0.2)
        try:
            return await super().connect(config, callbacks)
        finally:
            self.finished += 1


def test_every_connect_request_is_settled_before_the_hud_socket_closes() -> None:
    SlowTransport.instances.clear()

    with TestClient(_app(SlowTransport)) as client:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.receive_json()

            ws.send_json({"type": "CONNECT"})
            assert ws.receive_json() == {"type": "STATE", "state": "CONNECTING"}
            ws.send_json({"type": "CONNECT"})

        transport = SlowTransport.instances[-1]
        assert len(transport.configs) == 1
        assert transport.finished == 1
