"""
HUD bridge launcher.

Responsibilities:
- Load .env and configuration
- Parse host/port overrides
- Run the ASGI app under uvicorn
"""

from __future__ import annotations

import argparse

import uvicorn
from dotenv import load_dotenv

from config import AppConfig


def build_parser(config: AppConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the live voice HUD bridge.")
    parser.add_argument("--host", default=config.hud_host)
    parser.add_argument("--port", type=int, default=config.hud_port)
    parser.add_argument("--reload", action="store_true", help="dev mode only")
    return parser


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    config = AppConfig.load_from_env()
    args = build_parser(config).parse_args(argv)

    uvicorn.run(
        "server.asgi:app",
        host=args.host,
        port=args.port,
        log_level=config.log_level.lower(),
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
