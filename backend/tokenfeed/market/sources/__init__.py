"""Provider adapters."""

from .base import HttpTokenSource
from .dexscreener import DexScreenerSource
from .geckoterminal import GeckoTerminalSource
from .jupiter import JupiterSource

__all__ = [
    "HttpTokenSource",
    "DexScreenerSource",
    "GeckoTerminalSource",
    "JupiterSource",
]
