"""Investment log valuation and profit accounting engine."""

__version__ = "0.1.0"
