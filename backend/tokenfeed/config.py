"""Environment-based configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .market.sources import DexScreenerSource, GeckoTerminalSource, JupiterSource

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _get_str(env: Mapping[str, str], name: str, default: str) -> str:
    value = env.get(name, "").strip()
    return value or default


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name, "").strip().lower()
    if not value:
        return default
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """Process configuration. Build with Settings.from_env()."""

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    redis_url: str | None = None
    cache_ttl: float = 30.0
    search_cache_ttl: float = 60.0

    dexscreener_base_url: str = DexScreenerSource.DEFAULT_BASE_URL
    geckoterminal_base_url: str = GeckoTerminalSource.DEFAULT_BASE_URL
    jupiter_base_url: str = JupiterSource.DEFAULT_BASE_URL
    dexscreener_rate_limit: float = 5.0
    geckoterminal_rate_limit: float = 10.0
    jupiter_rate_limit: float = 10.0
    http_timeout: float = 15.0

    enable_scheduler: bool = True
    refresh_interval: float = 30.0
    price_check_interval: float = 10.0
    volume_check_interval: float = 15.0
    price_change_threshold: float = 1.0
    volume_spike_threshold: float = 50.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Read settings from the environment (os.environ by default).

        Empty values fall back to defaults; malformed numbers raise ValueError
        naming the offending variable.
        """
        env = os.environ if environ is None else environ
        d = cls()
        return cls(
            host=_get_str(env, "HOST", d.host),
            port=_get_int(env, "PORT", d.port),
            log_level=_get_str(env, "LOG_LEVEL", d.log_level).upper(),
            redis_url=env.get("REDIS_URL", "").strip() or None,
            cache_ttl=_get_float(env, "CACHE_TTL", d.cache_ttl),
            search_cache_ttl=_get_float(env, "SEARCH_CACHE_TTL", d.search_cache_ttl),
            dexscreener_base_url=_get_str(env, "DEXSCREENER_BASE_URL", d.dexscreener_base_url),
            geckoterminal_base_url=_get_str(
                env, "GECKOTERMINAL_BASE_URL", d.geckoterminal_base_url
            ),
            jupiter_base_url=_get_str(env, "JUPITER_BASE_URL", d.jupiter_base_url),
            dexscreener_rate_limit=_get_float(
                env, "DEXSCREENER_RATE_LIMIT", d.dexscreener_rate_limit
            ),
            geckoterminal_rate_limit=_get_float(
                env, "GECKOTERMINAL_RATE_LIMIT", d.geckoterminal_rate_limit
            ),
            jupiter_rate_limit=_get_float(env, "JUPITER_RATE_LIMIT", d.jupiter_rate_limit),
            http_timeout=_get_float(env, "HTTP_TIMEOUT", d.http_timeout),
            enable_scheduler=_get_bool(env, "ENABLE_SCHEDULER", d.enable_scheduler),
            refresh_interval=_get_float(env, "REFRESH_INTERVAL", d.refresh_interval),
            price_check_interval=_get_float(env, "PRICE_CHECK_INTERVAL", d.price_check_interval),
            volume_check_interval=_get_float(
                env, "VOLUME_CHECK_INTERVAL", d.volume_check_interval
            ),
            price_change_threshold=_get_float(
                env, "PRICE_CHANGE_THRESHOLD", d.price_change_threshold
            ),
            volume_spike_threshold=_get_float(
                env, "VOLUME_SPIKE_THRESHOLD", d.volume_spike_threshold
            ),
        )
