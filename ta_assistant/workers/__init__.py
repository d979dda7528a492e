"""
Workers Module: background processing threads for the TA Assistant.

- PRICE: owns the live price subscription and its event loop
"""

from ta_assistant.workers.price_worker import PRICE, PriceWorker

__all__ = [
    "PRICE",
    "PriceWorker",
]
