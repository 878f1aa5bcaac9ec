"""Normalization of provider fundamentals into FundamentalRow."""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .base import MarketDataProvider

logger = logging.getLogger(__name__)

WEEKS_6M = 26
WEEKS_12M = 52

# Provider field aliases, resolved here and nowhere else.
_FIELD_ALIASES = {
    'beta': ('Beta', 'beta'),
    'market_cap': ('MarketCapitalization', 'marketCap', 'market_cap'),
    'div_yield': ('divYield', 'DividendYield', 'div_yield'),
    'mom6': ('momentum6m', 'mom6'),
    'mom12': ('momentum12m', 'mom12'),
    'sector': ('Sector', 'sector'),
}


@dataclass(frozen=True)
class FundamentalRow:
    """Per-instrument fundamentals and momentum signals.

    ``beta`` and ``log_cap`` are NaN when the provider has no value; the
    feature assembler turns NaN into 0.
    """
    beta: float = float('nan')
    div_yield: float = 0.0
    log_cap: float = float('nan')
    mom6: float = 0.0
    mom12: float = 0.0
    sector: Optional[str] = None


def _to_float(value: Any, default: float = float('nan')) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default


def _first_present(raw: Mapping[str, Any], field: str) -> Any:
    for name in _FIELD_ALIASES[field]:
        if raw.get(name) not in (None, '', 'None', '-'):
            return raw[name]
    return None


def ttm_dividend_yield(series: pd.DataFrame, weeks: int = WEEKS_12M) -> float:
    """Trailing dividend sum over the last `weeks` bars divided by the last close."""
    if series is None or series.empty:
        return 0.0
    series = series.sort_values('date')
    last_close = _to_float(series['close'].iloc[-1])
    if not math.isfinite(last_close) or last_close <= 0:
        return 0.0
    dividends = pd.to_numeric(series['dividend'].tail(weeks), errors='coerce').fillna(0.0)
    return max(0.0, float(dividends.sum()) / last_close)


def momentum(series: pd.DataFrame, weeks: int) -> float:
    """Close-to-close price change over `weeks` bars; 0 when not computable."""
    if series is None or len(series) < weeks + 1:
        return 0.0
    closes = series.sort_values('date')['close'].to_numpy(dtype=float)
    last = closes[-1]
    prev = closes[-1 - weeks]
    if not (np.isfinite(last) and np.isfinite(prev)) or prev <= 0:
        return 0.0
    return float(last / prev - 1)


class FundamentalsAdapter:
    """Turn raw provider payloads into typed FundamentalRow objects."""

    def normalize(
        self,
        ticker: str,
        overview: Optional[Mapping[str, Any]],
        series: Optional[pd.DataFrame]
    ) -> FundamentalRow:
        """
        Build a FundamentalRow for one ticker.

        Args:
            ticker: Stock ticker
            overview: Raw fundamentals snapshot (may be empty or None)
            series: Weekly price/dividend series used for momentum and yield

        Returns:
            FundamentalRow
        """
        raw = overview or {}

        market_cap = _to_float(_first_present(raw, 'market_cap'))
        log_cap = math.log(market_cap) if math.isfinite(market_cap) and market_cap > 0 else float('nan')

        # Prefer series-derived signals; fall back to provider-supplied ones.
        if series is not None and not series.empty:
            div_yield = ttm_dividend_yield(series)
            mom6 = momentum(series, WEEKS_6M)
            mom12 = momentum(series, WEEKS_12M)
        else:
            div_yield = _to_float(_first_present(raw, 'div_yield'), 0.0)
            mom6 = _to_float(_first_present(raw, 'mom6'), 0.0)
            mom12 = _to_float(_first_present(raw, 'mom12'), 0.0)

        sector = _first_present(raw, 'sector')

        return FundamentalRow(
            beta=_to_float(_first_present(raw, 'beta')),
            div_yield=div_yield,
            log_cap=log_cap,
            mom6=mom6,
            mom12=mom12,
            sector=str(sector) if sector is not None else None,
        )

    def build_map(
        self,
        provider: MarketDataProvider,
        tickers: List[str],
        series_map: Optional[Dict[str, pd.DataFrame]] = None
    ) -> Dict[str, FundamentalRow]:
        """
        Fetch and normalize fundamentals for every ticker.

        A failed overview fetch is logged and treated as an empty payload.
        """
        series_map = series_map or {}
        rows = {}
        for ticker in tickers:
            try:
                overview = provider.get_overview(ticker)
            except (ValueError, OSError) as e:
                logger.warning("Overview unavailable for %s: %s", ticker, e)
                overview = {}

            series = series_map.get(ticker)
            if series is None:
                try:
                    series = provider.get_weekly_series(ticker)
                except (ValueError, OSError) as e:
                    logger.warning("Weekly series unavailable for %s: %s", ticker, e)
                    series = None

            rows[ticker] = self.normalize(ticker, overview, series)
        return rows
