"""Data access layer for market data and fundamentals."""

from .base import DataCache, MarketDataProvider
from .cache import JsonFileCache, MemoryCache
from .fundamentals import FundamentalRow, FundamentalsAdapter
from .market_data import (
    AlphaVantageMarketDataProvider,
    MockMarketDataProvider,
    get_market_data_provider,
)

__all__ = [
    'DataCache',
    'MarketDataProvider',
    'JsonFileCache',
    'MemoryCache',
    'FundamentalRow',
    'FundamentalsAdapter',
    'AlphaVantageMarketDataProvider',
    'MockMarketDataProvider',
    'get_market_data_provider',
]
