"""
ASGI entry point for the HUD bridge.

Used by uvicorn (server.main) or any other ASGI server:
    uvicorn server.asgi:app --app-dir backend

Environment comes from the process and from a local .env file.
"""

from dotenv import load_dotenv

load_dotenv()

from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app()
