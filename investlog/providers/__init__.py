"""Upstream market data providers."""

from .alpha_vantage import AlphaVantageClient
from .base import QuoteProvider, QuoteProviderError, parse_positive_price
from .exchange_rate import ExchangeRateClient, ExchangeRateError
from .finnhub import FinnhubClient

__all__ = [
    "AlphaVantageClient",
    "ExchangeRateClient",
    "ExchangeRateError",
    "FinnhubClient",
    "QuoteProvider",
    "QuoteProviderError",
    "parse_positive_price",
]
