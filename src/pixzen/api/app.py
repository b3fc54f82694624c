"""ASGI entry point: `uvicorn pixzen.api.app:app`."""

from .factory import create_app

app = create_app()
