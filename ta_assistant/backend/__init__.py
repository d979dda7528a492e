"""Backend module - Flask application and JSON API."""

from ta_assistant.backend.app import create_app

__all__ = ["create_app"]
