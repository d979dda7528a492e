"""Configuration management for the Crypto TA Assistant."""

import os
from pathlib import Path

import pytz
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    """Centralized configuration for the application."""

    # Timezone (all persisted timestamps are UTC)
    UTC = pytz.utc

    # Data directory
    DATA_DIR = Path(os.environ.get("DATA_DIR", "data"))
    DATA_DIR.mkdir(parents=True, exist_ok=True)

    # Database
    DB_PATH = Path(os.environ.get("TA_DB", str(DATA_DIR / "ta_assistant.db")))

    # LLM Provider Configuration
    LLM_PROVIDER = os.environ.get("LLM_PROVIDER", "gemini").lower()  # "gemini" or "openrouter"

    # Gemini Configuration (API_KEY kept for older .env files)
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", os.environ.get("API_KEY", ""))
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-pro")

    # OpenRouter Configuration
    OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY", "")
    OPENROUTER_BASE_URL = os.environ.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1").rstrip("/")
    OPENROUTER_MODEL = os.environ.get("OPENROUTER_MODEL", "google/gemini-2.5-pro")

    # Debug mode
    DEBUG = _flag("TA_DEBUG", "")

    # LLM call limits
    LLM_CALLS_PER_MIN = int(os.environ.get("LLM_CALLS_PER_MIN", "6"))
    LLM_TIMEOUT = int(os.environ.get("LLM_TIMEOUT", "180"))
    LLM_TEMP = float(os.environ.get("LLM_TEMP", "0.2"))

    # Analysis history
    HISTORY_MAX = int(os.environ.get("HISTORY_MAX", "50"))
    HISTORY_KEY = os.environ.get("HISTORY_KEY", "analysisHistory")

    # Live price stream
    BINANCE_WS_BASE = os.environ.get("BINANCE_WS_BASE", "wss://stream.binance.com:9443/ws").rstrip("/")
    PRICE_RECONNECT_SECONDS = float(os.environ.get("PRICE_RECONNECT_SECONDS", "5"))
    AUTO_PRICE = _flag("AUTO_PRICE", "1")
    DEFAULT_TICKER = os.environ.get("DEFAULT_TICKER", "BTCUSDT").upper()

    # Flask server
    HOST = os.environ.get("HOST", "127.0.0.1")
    PORT = int(os.environ.get("PORT", "5070"))
    SECRET_KEY = os.environ.get("SECRET_KEY", "ta-assistant-secret-change-me")


# Export commonly used config values at module level for convenience
UTC = Config.UTC
DATA_DIR = Config.DATA_DIR
DB_PATH = Config.DB_PATH

# LLM
LLM_PROVIDER = Config.LLM_PROVIDER
GEMINI_MODEL = Config.GEMINI_MODEL
OPENROUTER_BASE_URL = Config.OPENROUTER_BASE_URL
OPENROUTER_MODEL = Config.OPENROUTER_MODEL
LLM_CALLS_PER_MIN = Config.LLM_CALLS_PER_MIN
LLM_TIMEOUT = Config.LLM_TIMEOUT
LLM_TEMP = Config.LLM_TEMP

# History
HISTORY_MAX = Config.HISTORY_MAX
HISTORY_KEY = Config.HISTORY_KEY

# Price stream
BINANCE_WS_BASE = Config.BINANCE_WS_BASE
PRICE_RECONNECT_SECONDS = Config.PRICE_RECONNECT_SECONDS
AUTO_PRICE = Config.AUTO_PRICE
DEFAULT_TICKER = Config.DEFAULT_TICKER

# Debug
DEBUG = Config.DEBUG
