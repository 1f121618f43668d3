"""Cross-source reconciliation of token records."""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import replace

import numpy as np

from .models import SortField, TokenRecord


def merge_tokens(token_lists: Iterable[Iterable[TokenRecord]]) -> list[TokenRecord]:
    """Group records by address and emit exactly one record per address.

    Output order is first-seen address order across the flattened input.
    Groups with a single record pass through untouched.
    """
    groups: dict[str, list[TokenRecord]] = {}
    for tokens in token_lists:
        for token in tokens:
            groups.setdefault(token.address, []).append(token)

    return [group[0] if len(group) == 1 else merge_group(group) for group in groups.values()]


def merge_group(group: list[TokenRecord], now: float | None = None) -> TokenRecord:
    """Reconcile several readings of one token.

    Sizes are summed across venues. Price is weighted by each record's share
    of total liquidity (uniform when there is none). The 1h change comes from
    the freshest reading and the label names the most liquid one; ties go to
    the earlier record. Every other field comes from the first record.
    """
    base = group[0]

    liquidities = np.array([t.liquidity for t in group], dtype=float)
    prices = np.array([t.price for t in group], dtype=float)
    total_liquidity = float(liquidities.sum())
    if total_liquidity > 0:
        price = float(np.average(prices, weights=liquidities))
    else:
        price = float(prices.mean())

    freshest = max(group, key=lambda t: t.observed_at)
    dominant = max(group, key=lambda t: t.liquidity)

    return replace(
        base,
        price=price,
        volume=sum(t.volume for t in group),
        liquidity=total_liquidity,
        transaction_count=sum(t.transaction_count for t in group),
        price_change_1h=freshest.price_change_1h,
        source_label=f"{len(group)} sources ({dominant.source_label})",
        observed_at=time.time() if now is None else now,
    )


def deduplicate_by_address(tokens: Iterable[TokenRecord]) -> list[TokenRecord]:
    """Keep the first record seen for each address. No merging."""
    seen: set[str] = set()
    unique: list[TokenRecord] = []
    for token in tokens:
        if token.address in seen:
            continue
        seen.add(token.address)
        unique.append(token)
    return unique


_SORT_KEYS = {
    SortField.VOLUME: lambda t: t.volume,
    SortField.PRICE_CHANGE: lambda t: t.price_change_1h,
    SortField.MARKET_CAP: lambda t: t.market_cap,
    SortField.LIQUIDITY: lambda t: t.liquidity,
}


def sort_tokens(tokens: Iterable[TokenRecord], sort: SortField) -> list[TokenRecord]:
    """Descending, stable sort on the requested field."""
    return sorted(tokens, key=_SORT_KEYS[SortField(sort)], reverse=True)
