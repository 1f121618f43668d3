"""Abstract interface for token market data sources."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import TokenRecord


class TokenSource(ABC):
    """Contract for market data providers.

    Implementations normalize provider payloads into TokenRecord instances.
    They may raise SourceError subclasses when the provider is unreachable;
    the aggregator treats that as "this source is absent" for the call.

    Lifecycle:
        source = DexScreenerSource(...)
        tokens = await source.get_trending_tokens(100)
        matches = await source.search_tokens("bonk")
        # ... app shutting down ...
        await source.aclose()
    """

    name: str = ""

    @abstractmethod
    async def get_trending_tokens(self, limit: int) -> list[TokenRecord]:
        """Provider-specific discovery of currently active tokens.

        A failing sub-request is logged and skipped; only a failure that
        leaves nothing to return should raise.
        """

    @abstractmethod
    async def search_tokens(self, query: str) -> list[TokenRecord]:
        """Tokens matching a free-text query (name, ticker or address)."""

    async def get_token_by_address(self, address: str) -> TokenRecord | None:
        """Single-token lookup. Sources without one return None."""
        return None

    async def aclose(self) -> None:
        """Release network resources. Safe to call multiple times."""
