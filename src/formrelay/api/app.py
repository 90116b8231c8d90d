"""ASGI entry point: ``uvicorn formrelay.api.app:app``."""

from .factory import create_app

app = create_app()
