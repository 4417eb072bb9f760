"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No session logic
- No behavioral constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    DEFAULT_HUD_HOST,
    DEFAULT_HUD_PORT,
    DEFAULT_LIVE_MODEL,
    DEFAULT_OWNER_NAME,
    DEFAULT_VOICE_NAME,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the HUD bridge and session connectors.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Live endpoint
    # ------------------------------------------------------------------

    gemini_api_key: str | None
    live_model: str
    live_voice: str

    # ------------------------------------------------------------------
    # Persona
    # ------------------------------------------------------------------

    owner_name: str
    default_language: str

    # ------------------------------------------------------------------
    # Audio devices (None = system default)
    # ------------------------------------------------------------------

    input_device: str | None
    output_device: str | None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # HUD bridge
    # ------------------------------------------------------------------

    hud_host: str
    hud_port: int

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Missing optional variables fall back to defaults. The API key is
        validated by whoever opens a live session, not here.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            gemini_api_key=os.environ.get("GEMINI_API_KEY"),
            live_model=os.environ.get("LIVE_MODEL", DEFAULT_LIVE_MODEL),
            live_voice=os.environ.get("LIVE_VOICE", DEFAULT_VOICE_NAME),

            owner_name=os.environ.get("OWNER_NAME", DEFAULT_OWNER_NAME),
            default_language=os.environ.get("DEFAULT_LANGUAGE", "english"),

            input_device=os.environ.get("INPUT_DEVICE") or None,
            output_device=os.environ.get("OUTPUT_DEVICE") or None,

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            hud_host=os.environ.get("HUD_HOST", DEFAULT_HUD_HOST),
            hud_port=int(os.environ.get("HUD_PORT", str(DEFAULT_HUD_PORT))),
        )
