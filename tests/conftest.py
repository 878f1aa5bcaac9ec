"""
Shared test fixtures for the portfolio engine test suite.

Provides:
- An isolated in-memory configuration per test
- Weekly series builders with deterministic prices
- A static market data provider and stub scorers
"""

import copy
import sys
import time
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import pytest

# Add parent to path for module imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from portfolio_engine.config import Config, set_config
from portfolio_engine.data.base import MarketDataProvider, records_to_weekly_frame
from portfolio_engine.features import CURRENT_SCHEMA
from portfolio_engine.models import Scorer


TEST_CONFIG = {
    'data_sources': {'market_data': {'provider': 'mock'}},
    'universe': ['AAA', 'BBB', 'CCC', 'DDD'],
    'statistics': {'periods_per_year': 52, 'min_observations': 30, 'min_aligned_dates': 3},
    'optimizer': {'tolerance': 1.0e-6, 'max_iter': 1000, 'psd_tolerance': 1.0e-10},
    'marginal': {
        'risk_free_rate': 0.043,
        'cvar_confidence': 0.95,
        'epsilon': 0.01,
        'donor_policy': 'largest',
        'variance_floor': 1.0e-12,
    },
    'ranking': {'top_k': 3, 'reason': 'High P(improve Sharpe) for your target'},
    'models': {'scorer': {'type': 'lightgbm', 'timeout_seconds': 5}},
    'logging': {'level': 'DEBUG'},
}

START_DATE = date(2023, 1, 6)


@pytest.fixture(autouse=True)
def test_config():
    """Install an isolated config for every test and reset it afterwards."""
    config = Config.from_dict(copy.deepcopy(TEST_CONFIG))
    set_config(config)
    yield config
    set_config(None)


def make_series(
    closes: List[float],
    start: date = START_DATE,
    dividends: Optional[Dict[int, float]] = None
) -> pd.DataFrame:
    """Weekly series with one bar per close, seven days apart."""
    dividends = dividends or {}
    records = [
        {
            'date': start + timedelta(weeks=i),
            'close': close,
            'adjusted_close': close,
            'dividend': dividends.get(i, 0.0),
        }
        for i, close in enumerate(closes)
    ]
    return records_to_weekly_frame(records)


def random_walk(seed: int, weeks: int = 80, drift: float = 0.002, vol: float = 0.03, start_price: float = 100.0) -> List[float]:
    rng = np.random.RandomState(seed)
    returns = rng.normal(drift, vol, weeks - 1)
    return list(start_price * np.concatenate([[1.0], (1 + returns).cumprod()]))


class StaticMarketDataProvider(MarketDataProvider):
    """Provider serving prebuilt series and overviews."""

    def __init__(self, series: Dict[str, pd.DataFrame], overviews: Optional[Dict[str, dict]] = None):
        super().__init__()
        self.series = series
        self.overviews = overviews or {}
        self.overview_calls: List[str] = []

    def get_weekly_series(self, ticker: str) -> pd.DataFrame:
        if ticker not in self.series:
            raise ValueError(f"No data for {ticker}")
        return self.series[ticker]

    def get_overview(self, ticker: str) -> dict:
        self.overview_calls.append(ticker)
        if ticker not in self.overviews:
            raise ValueError(f"No overview for {ticker}")
        return self.overviews[ticker]

    def health_check(self) -> bool:
        return True


class DeltaSharpeScorer(Scorer):
    """Scores each row by its deltaSharpe column."""

    def __init__(self):
        super().__init__('stub')
        self.model = object()
        self.feature_names = list(CURRENT_SCHEMA.columns)
        self.calls = 0

    def predict(self, X: pd.DataFrame) -> pd.Series:
        self.calls += 1
        return X['deltaSharpe'] * 100.0


class SlowScorer(DeltaSharpeScorer):
    def predict(self, X: pd.DataFrame) -> pd.Series:
        time.sleep(0.5)
        return super().predict(X)


class FailingScorer(DeltaSharpeScorer):
    def predict(self, X: pd.DataFrame) -> pd.Series:
        raise RuntimeError("model crashed")


@pytest.fixture
def universe_series() -> Dict[str, pd.DataFrame]:
    """Four tickers with 80 aligned weekly bars and different drifts."""
    return {
        'AAA': make_series(random_walk(1, drift=0.001, vol=0.02), dividends={10: 0.5, 23: 0.5, 36: 0.5, 49: 0.5, 62: 0.5, 75: 0.5}),
        'BBB': make_series(random_walk(2, drift=0.003, vol=0.04, start_price=50.0)),
        'CCC': make_series(random_walk(3, drift=0.0015, vol=0.025, start_price=250.0)),
        'DDD': make_series(random_walk(4, drift=0.0025, vol=0.035, start_price=20.0)),
    }


@pytest.fixture
def overviews() -> Dict[str, dict]:
    return {
        'AAA': {'Beta': '0.8', 'MarketCapitalization': '200000000000', 'Sector': 'ENERGY'},
        'BBB': {'Beta': '1.4', 'MarketCapitalization': '50000000000'},
        'CCC': {'beta': 1.1, 'marketCap': 1.0e12},
        'DDD': {'Beta': 'None', 'MarketCapitalization': '-'},
    }


@pytest.fixture
def static_provider(universe_series, overviews) -> StaticMarketDataProvider:
    return StaticMarketDataProvider(universe_series, overviews)


@pytest.fixture
def abc_inputs():
    """Three-asset universe with diagonal covariance."""
    mu = np.array([0.08, 0.12, 0.05])
    sigma = np.diag([0.04, 0.09, 0.02])
    return ['A', 'B', 'C'], mu, sigma
