"""Expected returns and covariance from weekly price history."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from ..config import get_config
from ..errors import InsufficientHistory, NoUsableInstruments

logger = logging.getLogger(__name__)


@dataclass
class PortfolioStats:
    """Universe-aligned statistics for one request."""
    universe: List[str]
    mu: pd.Series
    sigma: pd.DataFrame
    latest_prices: Dict[str, float]
    returns: pd.DataFrame
    calendar: List = field(default_factory=list)
    dropped: Dict[str, str] = field(default_factory=dict)


class StatisticsEngine:
    """Turn raw weekly price series into (universe, mu, sigma, latest prices)."""

    def __init__(
        self,
        periods_per_year: Optional[int] = None,
        min_observations: Optional[int] = None,
        min_aligned_dates: Optional[int] = None
    ):
        """
        Initialize statistics engine.

        Args:
            periods_per_year: Annualization factor for weekly data (52)
            min_observations: Minimum valid returns to keep an instrument (30)
            min_aligned_dates: Minimum shared calendar length (3)
        """
        config = get_config()
        self.periods_per_year = periods_per_year if periods_per_year is not None else config.get('statistics.periods_per_year', 52)
        self.min_observations = min_observations if min_observations is not None else config.get('statistics.min_observations', 30)
        self.min_aligned_dates = min_aligned_dates if min_aligned_dates is not None else config.get('statistics.min_aligned_dates', 3)

    def compute(self, series_map: Mapping[str, pd.DataFrame]) -> PortfolioStats:
        """
        Compute aligned return statistics.

        Args:
            series_map: ticker -> DataFrame with 'date' and 'close' columns,
                in universe insertion order

        Returns:
            PortfolioStats for the instruments that pass the sufficiency filter
        """
        closes = self._close_table(series_map)
        if len(closes.columns) == 0:
            raise NoUsableInstruments(
                "No instrument returned any price data",
                {'requested': list(series_map.keys())}
            )

        calendar = closes.index
        if len(calendar) < self.min_aligned_dates:
            raise InsufficientHistory(
                "Not enough overlapping history to compute returns",
                {
                    'aligned_dates': len(calendar),
                    'required': self.min_aligned_dates,
                    'tickers': list(closes.columns),
                }
            )

        prev = closes.iloc[:-1].to_numpy(dtype=float)
        curr = closes.iloc[1:].to_numpy(dtype=float)
        with np.errstate(divide='ignore', invalid='ignore'):
            raw = (curr - prev) / prev
        valid = np.isfinite(prev) & np.isfinite(curr) & (prev > 0) & (curr > 0)
        returns = pd.DataFrame(
            np.where(valid, raw, np.nan),
            index=calendar[1:],
            columns=closes.columns
        )

        kept: List[str] = []
        dropped: Dict[str, str] = {}
        latest_prices: Dict[str, float] = {}
        last_row = closes.iloc[-1]

        for ticker in closes.columns:
            last_close = float(last_row[ticker])
            n_valid = int(returns[ticker].notna().sum())
            if not np.isfinite(last_close) or last_close <= 0:
                dropped[ticker] = "no close on last aligned date"
            elif n_valid < self.min_observations:
                dropped[ticker] = f"{n_valid} valid returns < {self.min_observations}"
            else:
                kept.append(ticker)
                latest_prices[ticker] = last_close

        for ticker, reason in dropped.items():
            logger.info("Dropping %s from universe: %s", ticker, reason)

        if not kept:
            raise NoUsableInstruments(
                "No tickers with sufficient overlapping history",
                {'dropped': dropped, 'min_observations': self.min_observations}
            )

        # Undefined returns count as 0 for the mean and covariance.
        filled = returns[kept].fillna(0.0)

        weekly_mean = filled.mean()
        mu = (1 + weekly_mean) ** self.periods_per_year - 1
        sigma = filled.cov(ddof=1) * self.periods_per_year

        logger.debug(
            "Computed stats for %d instruments over %d aligned dates",
            len(kept), len(calendar)
        )

        return PortfolioStats(
            universe=kept,
            mu=mu,
            sigma=sigma,
            latest_prices=latest_prices,
            returns=filled,
            calendar=list(calendar),
            dropped=dropped,
        )

    def _close_table(self, series_map: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
        """Date x ticker close table restricted to the intersection of dates."""
        columns = {}
        for ticker, df in series_map.items():
            if df is None or df.empty:
                continue
            frame = df.drop_duplicates(subset='date', keep='last').set_index('date')
            columns[ticker] = pd.to_numeric(frame['close'], errors='coerce')

        if not columns:
            return pd.DataFrame()

        shared = None
        for series in columns.values():
            dates = set(series.index)
            shared = dates if shared is None else shared & dates

        calendar = sorted(shared)
        return pd.DataFrame({t: s.reindex(calendar) for t, s in columns.items()}, index=calendar)
