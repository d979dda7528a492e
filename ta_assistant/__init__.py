"""Crypto TA Assistant - LLM technical-analysis reports with a live price feed."""

__version__ = "0.1.0"
