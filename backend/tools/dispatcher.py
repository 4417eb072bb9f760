"""
Tool call dispatcher.

Responsibilities:
- Map a ToolCall's name onto the closed ToolName set
- Execute the matching handler synchronously
- Produce exactly one ToolResult per ToolCall, correlated by call id

Failure handling:
- Unknown tool name -> {"error": "Unknown tool"} result, never an exception
- Handler exception -> {"error": ..., "type": ...} result, never an exception
So one bad call cannot abort its siblings in the same inbound message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from observability.logger import log_event
from tools.declarations import ToolName
from tools.handlers import HudServices, OpenAppSink


Handler = Callable[[Mapping[str, Any]], dict[str, Any]]

UNKNOWN_TOOL_ERROR = "Unknown tool"


@dataclass(frozen=True)
class ToolCall:
    """A model request to run one named local tool."""
    call_id: str
    name: str
    args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """The single reply to one ToolCall (same id, same name)."""
    call_id: str
    name: str
    result: dict[str, Any]
    is_error: bool = False

    def to_wire(self) -> dict[str, Any]:
        """Function response in the live endpoint's JSON shape."""
        return {
            "id": self.call_id,
            "name": self.name,
            "response": {"result": self.result},
        }


def _bind_handlers(services: HudServices) -> dict[ToolName, Handler]:
    handlers: dict[ToolName, Handler] = {
        ToolName.GET_WEATHER: lambda a: services.get_weather(a.get("location")),
        ToolName.GET_SYSTEM_STATUS: lambda a: services.get_system_status(),
        ToolName.SEARCH_PUBLIC_DATA: lambda a: services.search_public_data(a.get("query")),
        ToolName.GET_NEWS_HEADLINES: lambda a: services.get_news_headlines(a.get("category")),
        ToolName.OPEN_APP: lambda a: services.open_app(a.get("appName"), a.get("content")),
    }
    missing = set(ToolName) - set(handlers)
    if missing:
        raise RuntimeError(f"No handler bound for tools: {sorted(m.value for m in missing)}")
    return handlers


class ToolDispatcher:
    """Total mapping from ToolName to handler; the unknown name is the only open case."""

    def __init__(
        self,
        *,
        on_open_app: OpenAppSink | None = None,
        services: HudServices | None = None,
        session_id: str | None = None,
    ) -> None:
        self._services = services or HudServices(on_open_app=on_open_app)
        self._handlers = _bind_handlers(self._services)
        self._session_id = session_id

    def dispatch(self, call: ToolCall) -> ToolResult:
        tool = ToolName.lookup(call.name)

        if tool is None:
            result = ToolResult(
                call_id=call.call_id,
                name=call.name,
                result={"error": UNKNOWN_TOOL_ERROR},
                is_error=True,
            )
        else:
            try:
                payload = self._handlers[tool](call.args or {})
                result = ToolResult(call_id=call.call_id, name=call.name, result=payload)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                result = ToolResult(
                    call_id=call.call_id,
                    name=call.name,
                    result={"error": str(exc), "type": type(exc).__name__},
                    is_error=True,
                )

        log_event({
            "event_type": "TOOL_DISPATCHED",
            "session_id": self._session_id,
            "call_id": call.call_id,
            "tool": call.name,
            "is_error": result.is_error,
        })
        return result
