"""Portfolio optimization, marginal utilities and ranking."""

from .optimizer import MeanVarianceOptimizer, clean_weights
from .marginal import MarginalMetrics, MarginalUtilityEngine
from .metrics import PortfolioMetrics
from .ranker import Ranker, Suggestion

__all__ = [
    'MeanVarianceOptimizer',
    'clean_weights',
    'MarginalMetrics',
    'MarginalUtilityEngine',
    'PortfolioMetrics',
    'Ranker',
    'Suggestion',
]
