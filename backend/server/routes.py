"""
Route registration for the HUD bridge.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire one SessionConnector to each HUD WebSocket
- Translate connector callbacks into HUD messages
- Pull dependencies from app.state

HUD -> bridge:
  {"type": "CONNECT", "language": "english" | "urdu" | "hindi"}
  {"type": "DISCONNECT"}

Bridge -> HUD:
  LOG_HISTORY (once, on accept), STATE, LOG, VOLUME, OPEN_APP, ERROR
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from observability.logger import log_event
from session.connection_status import ConnectionState
from session.connector import SessionCallbacks
from session.message_log import MessageLogEntry, RecentLog


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.websocket("/ws")
    async def hud_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        recent_log: RecentLog = app.state.recent_log
        outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

        connector = app.state.connector_factory(_hud_callbacks(outbox, recent_log))

        outbox.put_nowait({"type": "LOG_HISTORY", "entries": recent_log.snapshot()})
        outbox.put_nowait({"type": "STATE", "state": connector.state.value})

        pump = asyncio.create_task(_pump_outbox(ws, outbox))
        connect_tasks: set[asyncio.Task[None]] = set()

        try:
            while True:
                raw = await ws.receive_text()
                try:
                    msg = json.loads(raw)
                except ValueError:
                    msg = None

                msg_type = msg.get("type") if isinstance(msg, dict) else None

                if msg_type == "CONNECT":
                    language = msg.get("language") or app.state.config.default_language
                    task = asyncio.create_task(connector.connect(language))
                    connect_tasks.add(task)
                    task.add_done_callback(connect_tasks.discard)

                elif msg_type == "DISCONNECT":
                    await connector.disconnect()

                else:
                    log_event({
                        "event_type": "HUD_UNKNOWN_MESSAGE",
                        "session_id": connector.session_id,
                        "message": raw[:200],
                    })
                    outbox.put_nowait({"type": "ERROR", "message": "unknown message type"})

        except WebSocketDisconnect:
            log_event({
                "event_type": "HUD_DISCONNECTED",
                "session_id": connector.session_id,
            })

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "session_id": connector.session_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })

        finally:
            await connector.disconnect()
            if connect_tasks:
                await asyncio.gather(*connect_tasks, return_exceptions=True)
            pump.cancel()
            await asyncio.gather(pump, return_exceptions=True)


def _hud_callbacks(outbox: asyncio.Queue[dict[str, Any]], recent_log: RecentLog) -> SessionCallbacks:
    def on_state_change(state: ConnectionState) -> None:
        outbox.put_nowait({"type": "STATE", "state": state.value})

    def on_log(entry: MessageLogEntry) -> None:
        recent_log.append(entry)
        outbox.put_nowait({"type": "LOG", "entry": entry.to_dict()})

    def on_volume_change(level: float) -> None:
        outbox.put_nowait({"type": "VOLUME", "level": level})

    def on_open_app(app_name: str, content: str) -> None:
        outbox.put_nowait({"type": "OPEN_APP", "app": app_name, "content": content})

    return SessionCallbacks(
        on_state_change=on_state_change,
        on_log=on_log,
        on_volume_change=on_volume_change,
        on_open_app=on_open_app,
    )


async def _pump_outbox(ws: WebSocket, outbox: asyncio.Queue[dict[str, Any]]) -> None:
    """Single writer for the HUD socket; keeps messages in callback order."""
    while True:
        msg = await outbox.get()
        try:
            await ws.send_text(json.dumps(msg))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "HUD_SEND_FAILED",
                "message_type": msg.get("type"),
                "error": repr(exc),
            })
            return
