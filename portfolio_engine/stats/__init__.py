"""Return statistics estimation."""

from .statistics import PortfolioStats, StatisticsEngine

__all__ = ['PortfolioStats', 'StatisticsEngine']
