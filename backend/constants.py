"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for every behavioral constant in the client.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Microphone capture (float32 mono @ 16kHz, 4096-sample frames)
# =============================================================================

INPUT_SAMPLE_RATE_HZ: Final[int] = 16_000
INPUT_CHANNELS: Final[int] = 1
INPUT_FRAME_SAMPLES: Final[int] = 4096  # power of two
INPUT_FRAME_DURATION_S: Final[float] = INPUT_FRAME_SAMPLES / INPUT_SAMPLE_RATE_HZ

# Wire encoding for outbound audio
PCM_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit, little-endian)
PCM_FULL_SCALE: Final[float] = 32768.0
INPUT_MIME_TYPE: Final[str] = f"audio/pcm;rate={INPUT_SAMPLE_RATE_HZ}"

# =============================================================================
# Playback (PCM16 mono @ 24kHz from the endpoint)
# =============================================================================

OUTPUT_SAMPLE_RATE_HZ: Final[int] = 24_000
OUTPUT_CHANNELS: Final[int] = 1
OUTPUT_BLOCK_SAMPLES: Final[int] = 1024

# =============================================================================
# Loudness reporting
# =============================================================================

# RMS is multiplied by this before being reported, so speech is visible
# on the HUD meter. Consumers clamp.
LOUDNESS_BOOST: Final[float] = 5.0
SILENT_VOLUME: Final[float] = 0.0

# =============================================================================
# Message log
# =============================================================================

MESSAGE_LOG_WINDOW: Final[int] = 50

LOG_TEXT_CONNECTED: Final[str] = "Secure connection established. Welcome back, {owner}."
LOG_TEXT_CLOSED: Final[str] = "System disengaged."
LOG_TEXT_TRANSPORT_ERROR: Final[str] = "Critical System Failure."
LOG_TEXT_SETUP_FAILED: Final[str] = "Connection failed: {reason}"
LOG_TEXT_INTERRUPTED: Final[str] = "Output interrupted."
LOG_TEXT_DECODE_FAILED: Final[str] = "Dropped malformed audio fragment."
LOG_TEXT_EXECUTING_TOOL: Final[str] = "Executing: {name}"
LOG_TEXT_GO_AWAY: Final[str] = "Link expiring in {time_left}."

# =============================================================================
# Live endpoint defaults
# =============================================================================

DEFAULT_LIVE_MODEL: Final[str] = "gemini-2.5-flash-native-audio-preview-09-2025"
DEFAULT_VOICE_NAME: Final[str] = "Fenrir"
DEFAULT_OWNER_NAME: Final[str] = "Asad"

LIVE_SETUP_TIMEOUT_S: Final[float] = 10.0

# =============================================================================
# HUD bridge
# =============================================================================

DEFAULT_HUD_HOST: Final[str] = "127.0.0.1"
DEFAULT_HUD_PORT: Final[int] = 8000
