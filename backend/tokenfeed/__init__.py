"""tokenfeed: multi-source token market data aggregator."""

__version__ = "0.1.0"
