"""Portfolio-level risk/return measures."""

from dataclasses import dataclass
from typing import Dict

import numpy as np
from scipy import stats


def portfolio_return(weights: np.ndarray, mu: np.ndarray) -> float:
    return float(np.dot(weights, mu))


def portfolio_variance(weights: np.ndarray, sigma: np.ndarray) -> float:
    return float(weights @ sigma @ weights)


def sharpe_ratio(
    weights: np.ndarray,
    mu: np.ndarray,
    sigma: np.ndarray,
    risk_free_rate: float
) -> float:
    """(mu.w - rf) / sqrt(w' Sigma w). Caller guarantees positive variance."""
    return (portfolio_return(weights, mu) - risk_free_rate) / np.sqrt(portfolio_variance(weights, sigma))


def normal_cvar(
    weights: np.ndarray,
    mu: np.ndarray,
    sigma: np.ndarray,
    confidence: float = 0.95
) -> float:
    """
    Closed-form expected shortfall assuming normally distributed returns.

        CVaR = -(mean - std * phi(z) / (1 - alpha)),  z = Phi^-1(alpha)

    Positive values are losses.
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"confidence must lie in (0, 1), got {confidence}")
    mean = portfolio_return(weights, mu)
    std = np.sqrt(max(portfolio_variance(weights, sigma), 0.0))
    z = stats.norm.ppf(confidence)
    tail_factor = stats.norm.pdf(z) / (1.0 - confidence)
    return float(-(mean - std * tail_factor))


@dataclass(frozen=True)
class PortfolioMetrics:
    """Summary of one weight vector."""
    expected_return: float
    volatility: float
    sharpe: float
    cvar: float

    @classmethod
    def from_weights(
        cls,
        weights: np.ndarray,
        mu: np.ndarray,
        sigma: np.ndarray,
        risk_free_rate: float,
        confidence: float = 0.95
    ) -> "PortfolioMetrics":
        variance = portfolio_variance(weights, sigma)
        volatility = float(np.sqrt(max(variance, 0.0)))
        expected = portfolio_return(weights, mu)
        return cls(
            expected_return=expected,
            volatility=volatility,
            sharpe=(expected - risk_free_rate) / volatility if volatility > 0 else float('nan'),
            cvar=normal_cvar(weights, mu, sigma, confidence),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            'expectedReturn': self.expected_return,
            'volatility': self.volatility,
            'sharpe': self.sharpe,
            'cvar': self.cvar,
        }
