"""
Local tool integrations.

None of these perform real I/O: each returns placeholder data standing in
for where a weather, telemetry, search or news integration would go.
"""

from __future__ import annotations

from typing import Callable


OpenAppSink = Callable[[str, str], None]


class HudServices:
    def __init__(self, on_open_app: OpenAppSink | None = None) -> None:
        self._on_open_app = on_open_app

    def get_weather(self, location: str | None = None) -> dict[str, object]:
        return {
            "temperature": 72,
            "unit": "Fahrenheit",
            "condition": "Clear skies",
            "humidity": "45%",
            "location": location or "Current Location",
            "note": "Conditions are optimal, Sir.",
        }

    def get_system_status(self) -> dict[str, object]:
        return {
            "cpu": "12%",
            "memory": "4.2GB / 16GB",
            "network": "Secure - Encrypted (256-bit)",
            "integrity": "100%",
            "power": "Stable",
        }

    def search_public_data(self, query: str | None = None) -> dict[str, object]:
        return {
            "query": query,
            "status": "Found",
            "summary": f"Search complete for '{query}'. Data retrieved.",
        }

    def get_news_headlines(self, category: str | None = None) -> dict[str, object]:
        return {
            "category": category,
            "headlines": [
                "Global tech markets show 5% increase.",
                "New AI advancements released by Google.",
                "SpaceX successfully lands Starship.",
            ],
        }

    def open_app(self, app_name: str | None = None, content: str | None = None) -> dict[str, object]:
        # Window creation belongs to the HUD; we only signal it.
        name = app_name or "notepad"
        if self._on_open_app is not None:
            self._on_open_app(name, content or "")
        return {"status": "opened", "app": name}
