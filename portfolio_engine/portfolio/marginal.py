"""Marginal effect of each candidate on a baseline portfolio."""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np

from .metrics import normal_cvar, portfolio_variance, sharpe_ratio
from ..config import get_config
from ..errors import DegenerateBaseline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarginalMetrics:
    """Change in risk-adjusted metrics from a small move into one candidate.

    Both deltas follow "higher is better": ``delta_cvar`` is the baseline
    CVaR minus the perturbed CVaR.
    """
    ticker: str
    delta_sharpe: float
    delta_cvar: float

    def to_dict(self) -> Dict[str, float]:
        return {'deltaSharpe': self.delta_sharpe, 'deltaCvar': self.delta_cvar}


def take_from_largest(weights: np.ndarray, candidate: int, epsilon: float) -> np.ndarray:
    """Move epsilon from the single largest current weight into the candidate.

    Ties go to the lowest index. When the candidate is itself the largest
    holding the vector comes back unchanged.
    """
    perturbed = weights.copy()
    donor = int(np.argmax(perturbed))
    perturbed[donor] = max(0.0, perturbed[donor] - epsilon)
    perturbed[candidate] += epsilon
    return perturbed


def take_pro_rata(weights: np.ndarray, candidate: int, epsilon: float) -> np.ndarray:
    """Move epsilon into the candidate, funded proportionally by all other holdings."""
    perturbed = weights.copy()
    others = perturbed.copy()
    others[candidate] = 0.0
    funding = others.sum()
    if funding <= 0:
        return perturbed
    take = min(epsilon, funding)
    perturbed -= others / funding * take
    perturbed[candidate] += take
    return perturbed


DONOR_POLICIES: Dict[str, Callable[[np.ndarray, int, float], np.ndarray]] = {
    'largest': take_from_largest,
    'pro_rata': take_pro_rata,
}


class MarginalUtilityEngine:
    """Perturb a baseline weight vector once per non-held candidate."""

    def __init__(
        self,
        risk_free_rate: Optional[float] = None,
        confidence: Optional[float] = None,
        epsilon: Optional[float] = None,
        donor_policy: Optional[str] = None,
        variance_floor: Optional[float] = None
    ):
        """
        Initialize marginal utility engine.

        Args:
            risk_free_rate: Annual risk-free rate for Sharpe (0.043)
            confidence: CVaR confidence level alpha (0.95)
            epsilon: Weight moved into each candidate (0.01)
            donor_policy: 'largest' (default) or 'pro_rata'
            variance_floor: Portfolio variance at or below which Sharpe is undefined
        """
        config = get_config()
        self.risk_free_rate = risk_free_rate if risk_free_rate is not None else config.get('marginal.risk_free_rate', 0.043)
        self.confidence = confidence if confidence is not None else config.get('marginal.cvar_confidence', 0.95)
        self.epsilon = epsilon if epsilon is not None else config.get('marginal.epsilon', 0.01)
        self.variance_floor = variance_floor if variance_floor is not None else config.get('marginal.variance_floor', 1e-12)

        policy_name = donor_policy or config.get('marginal.donor_policy', 'largest')
        if policy_name not in DONOR_POLICIES:
            raise ValueError(f"Unknown donor policy: {policy_name}")
        self.donor_policy = policy_name
        self._perturb = DONOR_POLICIES[policy_name]

    def compute(
        self,
        weights,
        mu,
        sigma,
        universe: List[str],
        held: Iterable[str]
    ) -> Dict[str, MarginalMetrics]:
        """
        Compute deltaSharpe and deltaCvar for every non-held instrument.

        Args:
            weights: Baseline weight vector aligned with universe
            mu: Expected returns aligned with universe
            sigma: Covariance matrix aligned with universe
            universe: Ordered tickers
            held: Tickers the investor already holds (excluded from output)

        Returns:
            Dict of ticker -> MarginalMetrics, in universe order
        """
        weights = np.asarray(weights, dtype=float)
        mu = np.asarray(mu, dtype=float)
        sigma = np.asarray(sigma, dtype=float)
        held_set = set(held)

        self._require_variance(weights, sigma, ticker=None)
        base_sharpe = sharpe_ratio(weights, mu, sigma, self.risk_free_rate)
        base_cvar = normal_cvar(weights, mu, sigma, self.confidence)

        metrics: Dict[str, MarginalMetrics] = {}
        for idx, ticker in enumerate(universe):
            if ticker in held_set:
                continue

            perturbed = self._perturb(weights, idx, self.epsilon)
            self._require_variance(perturbed, sigma, ticker=ticker)

            metrics[ticker] = MarginalMetrics(
                ticker=ticker,
                delta_sharpe=float(sharpe_ratio(perturbed, mu, sigma, self.risk_free_rate) - base_sharpe),
                delta_cvar=float(base_cvar - normal_cvar(perturbed, mu, sigma, self.confidence)),
            )

        logger.debug(
            "Computed marginal metrics for %d candidates (%d held, policy=%s)",
            len(metrics), len(held_set), self.donor_policy
        )
        return metrics

    def _require_variance(self, weights: np.ndarray, sigma: np.ndarray, ticker: Optional[str]) -> None:
        variance = portfolio_variance(weights, sigma)
        if variance <= self.variance_floor:
            context = {'variance': variance, 'floor': self.variance_floor}
            if ticker is None:
                raise DegenerateBaseline("Baseline portfolio variance is ~0; Sharpe is undefined", context)
            context['candidate'] = ticker
            raise DegenerateBaseline("Perturbed portfolio variance is ~0; Sharpe is undefined", context)
