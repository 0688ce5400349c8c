"""Database model exports."""

from .market import DailyProfit, PriceCacheEntry, PriceSnapshot
from .transaction import Instrument, Transaction

__all__ = [
    "Instrument",
    "Transaction",
    "PriceSnapshot",
    "PriceCacheEntry",
    "DailyProfit",
]
