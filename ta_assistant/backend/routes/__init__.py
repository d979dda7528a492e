"""Route blueprints."""

from ta_assistant.backend.routes import analysis, history, market, status

__all__ = ["analysis", "history", "market", "status"]
