"""
Tool declarations offered to the live model at connect time.

Static configuration: built once, never mutated during a session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ToolName(str, Enum):
    """Closed set of tools this client can execute."""
    GET_WEATHER = "getWeather"
    GET_SYSTEM_STATUS = "getSystemStatus"
    SEARCH_PUBLIC_DATA = "searchPublicData"
    GET_NEWS_HEADLINES = "getNewsHeadlines"
    OPEN_APP = "openApp"

    @classmethod
    def lookup(cls, name: str) -> ToolName | None:
        """Return the member for a wire name, or None for unknown tools."""
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass(frozen=True)
class ToolParameter:
    type: str
    description: str


@dataclass(frozen=True)
class ToolDeclaration:
    """Name, description and JSON-schema-like parameter list of one tool."""
    name: ToolName
    description: str
    parameters: dict[str, ToolParameter] = field(default_factory=dict)
    required: tuple[str, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        """Function declaration in the live endpoint's JSON shape."""
        schema: dict[str, Any] = {
            "type": "OBJECT",
            "properties": {
                pname: {"type": p.type.upper(), "description": p.description}
                for pname, p in self.parameters.items()
            },
        }
        if self.required:
            schema["required"] = list(self.required)

        return {
            "name": self.name.value,
            "description": self.description,
            "parameters": schema,
        }


TOOL_DECLARATIONS: tuple[ToolDeclaration, ...] = (
    ToolDeclaration(
        name=ToolName.GET_WEATHER,
        description="Get the current weather for a specific location.",
        parameters={
            "location": ToolParameter("string", "The city and state, e.g. San Francisco, CA"),
        },
        required=("location",),
    ),
    ToolDeclaration(
        name=ToolName.GET_SYSTEM_STATUS,
        description="Get the current system status of the Jarvis interface.",
    ),
    ToolDeclaration(
        name=ToolName.SEARCH_PUBLIC_DATA,
        description=(
            "Search public databases for real-time information, definitions, "
            "or general knowledge."
        ),
        parameters={
            "query": ToolParameter("string", "The search query."),
        },
        required=("query",),
    ),
    ToolDeclaration(
        name=ToolName.GET_NEWS_HEADLINES,
        description="Get the latest news headlines.",
        parameters={
            "category": ToolParameter(
                "string", "Category of news (e.g., Technology, World, Business)."
            ),
        },
        required=("category",),
    ),
    ToolDeclaration(
        name=ToolName.OPEN_APP,
        description="Open a virtual application in the HUD (Notepad, etc).",
        parameters={
            "appName": ToolParameter(
                "string", 'The name of the app to open. Supported: "notepad".'
            ),
            "content": ToolParameter(
                "string",
                "Optional initial text content to write into the app (e.g. for notepad).",
            ),
        },
        required=("appName",),
    ),
)
