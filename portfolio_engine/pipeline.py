"""End-to-end recommendation pipeline.

statistics -> optimizer -> marginal utilities -> features -> scorer -> ranker
"""

import logging
import math
import numbers
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .config import get_config
from .data import FundamentalsAdapter, MarketDataProvider, get_market_data_provider
from .errors import InvalidTarget, ScorerUnavailable
from .features import CURRENT_SCHEMA, FeatureAssembler, FeatureSchema
from .models import Scorer
from .portfolio import (
    MarginalUtilityEngine,
    MeanVarianceOptimizer,
    PortfolioMetrics,
    Ranker,
    Suggestion,
    clean_weights,
)
from .stats import StatisticsEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Holding:
    ticker: str
    shares: float = 0.0
    price_paid: float = 0.0


@dataclass
class RecommendationRequest:
    """Request shape received from the HTTP boundary."""
    holdings: List[Holding]
    target_return: float
    budget: float = 0.0

    def __post_init__(self):
        # A missing or non-finite budget means ranking only
        budget = _as_float(self.budget, 0.0)
        self.budget = budget if math.isfinite(budget) and budget > 0 else 0.0

    @classmethod
    def from_dict(cls, body: Mapping[str, Any]) -> "RecommendationRequest":
        """Parse ``{holdings: [{ticker, shares, pricePaid}], targetReturn, budget?}``."""
        raw_holdings = body.get('holdings') if isinstance(body, Mapping) else None
        holdings = []
        for item in raw_holdings if isinstance(raw_holdings, list) else []:
            if not isinstance(item, Mapping):
                continue
            ticker = str(item.get('ticker') or '').strip().upper()
            if not ticker:
                continue
            holdings.append(Holding(
                ticker=ticker,
                shares=_as_float(item.get('shares'), 0.0),
                price_paid=_as_float(item.get('pricePaid'), 0.0),
            ))

        target = _as_float(body.get('targetReturn') if isinstance(body, Mapping) else None, float('nan'))
        budget = _as_float(body.get('budget') if isinstance(body, Mapping) else None, 0.0)
        return cls(holdings=holdings, target_return=target, budget=budget)

    @property
    def held_tickers(self) -> List[str]:
        return list(dict.fromkeys(h.ticker.strip().upper() for h in self.holdings if h.ticker.strip()))


@dataclass
class RecommendationResult:
    """Ranked suggestions plus the feature order they were scored with."""
    recommendations: List[Suggestion]
    feature_order: List[str]
    schema_version: int
    baseline: Optional[PortfolioMetrics] = None
    universe: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'recommendations': [s.to_dict() for s in self.recommendations],
            'featureOrder': list(self.feature_order),
            'schemaVersion': self.schema_version,
        }
        if self.baseline is not None:
            payload['baseline'] = self.baseline.to_dict()
        return payload


def _as_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class RecommendationEngine:
    """Run one recommendation request through the full pipeline.

    Holds no per-request state, so one instance can serve concurrent
    requests as long as the data provider's cache is thread-safe.
    """

    def __init__(
        self,
        scorer: Scorer,
        market_data: Optional[MarketDataProvider] = None,
        universe: Optional[List[str]] = None,
        schema: FeatureSchema = CURRENT_SCHEMA,
        statistics: Optional[StatisticsEngine] = None,
        optimizer: Optional[MeanVarianceOptimizer] = None,
        marginal: Optional[MarginalUtilityEngine] = None,
        ranker: Optional[Ranker] = None,
        scorer_timeout: Optional[float] = None
    ):
        """
        Initialize recommendation engine.

        Args:
            scorer: Loaded scoring model
            market_data: Data collaborator (defaults to the configured provider)
            universe: Candidate tickers (defaults to the configured universe)
            schema: Feature column contract
            scorer_timeout: Seconds to wait for the scorer (None = config)
        """
        config = get_config()
        self.scorer = scorer
        self.market_data = market_data or get_market_data_provider()
        self.universe = list(universe) if universe is not None else config.universe
        self.schema = schema
        self.statistics = statistics or StatisticsEngine()
        self.optimizer = optimizer or MeanVarianceOptimizer()
        self.marginal = marginal or MarginalUtilityEngine()
        self.ranker = ranker or Ranker()
        self.assembler = FeatureAssembler(schema)
        self.fundamentals = FundamentalsAdapter()
        self.scorer_timeout = scorer_timeout if scorer_timeout is not None else config.get('models.scorer.timeout_seconds', 10)

        # Startup check of the column contract
        self.schema.validate_columns(self.scorer.feature_names)

    def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        """
        Produce ranked additions for one investor.

        Args:
            request: Holdings, target return and optional budget

        Returns:
            RecommendationResult; any failure raises a RecommendationError
        """
        target = request.target_return
        if isinstance(target, bool) or not isinstance(target, numbers.Real) or not math.isfinite(target):
            raise InvalidTarget("targetReturn must be a finite number", {'target_return': target})
        target = float(target)

        # 1) Stats for the full universe
        series_map = self.market_data.get_multiple_weekly_series(self.universe)
        stats = self.statistics.compute(series_map)
        mu = stats.mu.to_numpy()
        sigma = stats.sigma.to_numpy()

        # 2) Optimal weights for the investor's target
        weights = clean_weights(self.optimizer.optimize(mu, sigma, target), self.optimizer.tolerance)

        # 3) Marginal utility for everything not already held
        held = set(request.held_tickers)
        marginal_map = self.marginal.compute(weights, mu, sigma, stats.universe, held)

        # Baseline variance is known to be positive past this point
        baseline = PortfolioMetrics.from_weights(
            weights, mu, sigma, self.marginal.risk_free_rate, self.marginal.confidence
        )
        logger.info(
            "Baseline for target %.4f: return=%.4f vol=%.4f sharpe=%.3f cvar=%.4f",
            target, baseline.expected_return, baseline.volatility, baseline.sharpe, baseline.cvar
        )

        candidates = [t for t in stats.universe if t not in held and t in marginal_map]
        if not candidates:
            logger.info("No candidates left after excluding %d holdings", len(held))
            return RecommendationResult(
                recommendations=[],
                feature_order=list(self.schema.columns),
                schema_version=self.schema.version,
                baseline=baseline,
                universe=stats.universe,
            )

        # 4) Features in the contract order
        fundamentals = self.fundamentals.build_map(self.market_data, candidates, series_map)
        X = self.assembler.build(candidates, marginal_map, fundamentals, target)
        self.schema.validate_width(X.shape[1])
        self.schema.validate_columns(self.scorer.feature_names)

        # 5) Score, rank and size
        scores = self._score(X)
        suggestions = self.ranker.rank(
            candidates,
            scores.tolist(),
            stats.latest_prices,
            request.budget,
        )

        return RecommendationResult(
            recommendations=suggestions,
            feature_order=list(self.schema.columns),
            schema_version=self.schema.version,
            baseline=baseline,
            universe=stats.universe,
        )

    def _score(self, X: pd.DataFrame) -> pd.Series:
        """Call the scorer under a timeout; any failure fails the request."""
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self.scorer.predict, X)
        try:
            scores = future.result(timeout=self.scorer_timeout)
        except FutureTimeout as e:
            raise ScorerUnavailable(
                "Scorer timed out",
                {'timeout_seconds': self.scorer_timeout, 'rows': X.shape[0]}
            ) from e
        except Exception as e:
            raise ScorerUnavailable(
                "Scorer failed",
                {'error': f"{type(e).__name__}: {e}", 'rows': X.shape[0]}
            ) from e
        finally:
            executor.shutdown(wait=False)

        values = np.asarray(scores, dtype=float).ravel()
        if values.shape[0] != X.shape[0]:
            raise ScorerUnavailable(
                "Scorer returned the wrong number of scores",
                {'expected': X.shape[0], 'got': values.shape[0]}
            )
        if not np.all(np.isfinite(values)):
            raise ScorerUnavailable(
                "Scorer returned non-finite scores",
                {'bad_rows': [X.index[i] for i in np.flatnonzero(~np.isfinite(values))]}
            )
        return pd.Series(values, index=X.index)

