"""
Assistant persona and language modes.

Language modes are configuration, not state: each maps to a fixed
directive that is interpolated verbatim into the persona text.
"""

from __future__ import annotations

from enum import Enum

from constants import DEFAULT_OWNER_NAME


class LanguageMode(str, Enum):
    ENGLISH = "english"
    URDU = "urdu"
    HINDI = "hindi"

    @classmethod
    def parse(cls, value: str | LanguageMode | None) -> LanguageMode:
        """Lenient lookup; anything unrecognised falls back to English."""
        if isinstance(value, LanguageMode):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.ENGLISH


LANGUAGE_DIRECTIVES: dict[LanguageMode, str] = {
    LanguageMode.ENGLISH: (
        "PRIMARY LANGUAGE: ENGLISH. You are fluent in Urdu and Hindi but default "
        "to English unless spoken to in those languages."
    ),
    LanguageMode.URDU: (
        "PRIMARY LANGUAGE: URDU. You must speak mostly in Urdu. Use English only "
        "for technical terms if needed."
    ),
    LanguageMode.HINDI: (
        "PRIMARY LANGUAGE: HINDI. You must speak mostly in Hindi. Use English for "
        "technical terms if needed."
    ),
}


SYSTEM_INSTRUCTION_V1: str = """
You are J.A.R.V.I.S., a highly advanced AI system. Your owner is {owner}.

CORE DIRECTIVES:
1. **Identity**: You are Jarvis. Cool, sophisticated, British-accented, witty, and helpful.
2. **Language Mode**: {language_directive}
3. **Capabilities**: You can check weather, system status, search data, get news headlines, and **open virtual apps** (like Notepad) on the HUD.
4. **App Control**: If the user says "Open Notepad" or "Write [text]", call the `openApp` tool with 'notepad' and the content.

BEHAVIOR:
- Keep responses concise (voice-optimized).
- Do not say "I am opening the app", just do it and say "Done" or "Here it is".
- Always remain in character.
""".strip()


def build_system_instruction(
    language: LanguageMode,
    *,
    owner_name: str = DEFAULT_OWNER_NAME,
) -> str:
    """Persona text for one session."""
    return SYSTEM_INSTRUCTION_V1.format(
        owner=owner_name,
        language_directive=LANGUAGE_DIRECTIVES[language],
    )
