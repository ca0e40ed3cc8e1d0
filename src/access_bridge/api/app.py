"""ASGI entrypoint (uvicorn access_bridge.api.app:app)."""

from .factory import create_app

app = create_app()
