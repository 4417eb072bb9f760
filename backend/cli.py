"""
Headless console runner.

Runs one live session against the default (or configured) audio devices
and prints every message-log entry. Ctrl-C disconnects cleanly.

    python backend/cli.py --language urdu
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from config import AppConfig
from observability.logger import set_enabled
from session.connection_status import ConnectionState
from session.connector import SessionCallbacks, SessionConnector
from session.message_log import MessageLogEntry
from session.persona import LanguageMode
from transport.gemini_live import GeminiLiveTransport


def build_parser(config: AppConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one live voice session from the terminal.")
    parser.add_argument(
        "--language",
        choices=[m.value for m in LanguageMode],
        default=LanguageMode.parse(config.default_language).value,
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="also print JSONL diagnostic events",
    )
    return parser


def format_entry(entry: MessageLogEntry) -> str:
    stamp = entry.timestamp.astimezone().strftime("%H:%M:%S")
    return f"[{stamp}] {entry.role.value.upper():<6} {entry.text}"


async def run(config: AppConfig, language: LanguageMode) -> int:
    """Connect, wait until the session ends or the task is cancelled, disconnect."""
    ended = asyncio.Event()

    def on_state_change(state: ConnectionState) -> None:
        print(f"-- {state.value}", flush=True)
        if state in (ConnectionState.DISCONNECTED, ConnectionState.ERROR):
            ended.set()

    def on_open_app(app_name: str, content: str) -> None:
        print(f"-- open app: {app_name}", flush=True)
        if content:
            print(content, flush=True)

    connector = SessionConnector.from_config(
        config,
        transport=GeminiLiveTransport(api_key=config.gemini_api_key),
        callbacks=SessionCallbacks(
            on_state_change=on_state_change,
            on_log=lambda entry: print(format_entry(entry), flush=True),
            on_open_app=on_open_app,
        ),
    )

    failed = False
    try:
        await connector.connect(language)
        await ended.wait()
        failed = connector.state is ConnectionState.ERROR
    finally:
        await connector.disconnect()

    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    config = AppConfig.load_from_env()
    args = build_parser(config).parse_args(argv)

    set_enabled(args.json_logs)

    try:
        return asyncio.run(run(config, LanguageMode.parse(args.language)))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
