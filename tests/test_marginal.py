"""
Tests for portfolio/marginal.py and portfolio/metrics.py
"""

import numpy as np
import pytest

from portfolio_engine.errors import DegenerateBaseline
from portfolio_engine.portfolio import MarginalUtilityEngine, MeanVarianceOptimizer, PortfolioMetrics
from portfolio_engine.portfolio.marginal import take_from_largest, take_pro_rata
from portfolio_engine.portfolio.metrics import normal_cvar, sharpe_ratio


class TestMetrics:
    """Tests for the closed-form portfolio measures."""

    def test_normal_cvar_matches_closed_form(self):
        w = np.array([1.0])
        # z(0.95) = 1.6449, phi(z) / 0.05 = 2.0627
        assert normal_cvar(w, np.array([0.10]), np.array([[0.04]]), 0.95) == pytest.approx(-0.10 + 0.2 * 2.06271, abs=1e-4)

    def test_normal_cvar_rejects_bad_confidence(self):
        with pytest.raises(ValueError):
            normal_cvar(np.array([1.0]), np.array([0.1]), np.array([[0.04]]), 1.0)

    def test_sharpe_ratio(self):
        w = np.array([0.5, 0.5])
        mu = np.array([0.10, 0.06])
        sigma = np.diag([0.04, 0.04])
        assert sharpe_ratio(w, mu, sigma, 0.043) == pytest.approx((0.08 - 0.043) / np.sqrt(0.02))

    def test_portfolio_metrics_to_dict_keys(self):
        m = PortfolioMetrics.from_weights(np.array([1.0]), np.array([0.1]), np.array([[0.04]]), 0.043)
        assert set(m.to_dict()) == {'expectedReturn', 'volatility', 'sharpe', 'cvar'}
        assert m.volatility == pytest.approx(0.2)


class TestDonorPolicies:
    """Tests for the perturbation helpers."""

    def test_largest_takes_from_first_max_on_ties(self):
        w = np.array([0.4, 0.4, 0.2])
        out = take_from_largest(w, 2, 0.01)
        assert out == pytest.approx([0.39, 0.4, 0.21])
        assert w == pytest.approx([0.4, 0.4, 0.2])

    def test_largest_is_floored_at_zero(self):
        out = take_from_largest(np.array([0.005, 0.0]), 1, 0.01)
        assert out[0] == 0.0
        assert out[1] == pytest.approx(0.01)

    def test_candidate_that_is_largest_holding_is_unchanged(self):
        w = np.array([0.2, 0.8])
        assert take_from_largest(w, 1, 0.01) == pytest.approx(w)

    def test_pro_rata_keeps_budget(self):
        out = take_pro_rata(np.array([0.6, 0.3, 0.1]), 2, 0.01)
        assert out.sum() == pytest.approx(1.0)
        assert out[2] == pytest.approx(0.11)
        assert out[0] / out[1] == pytest.approx(2.0)


class TestMarginalUtilityEngine:
    """Tests for MarginalUtilityEngine.compute."""

    def test_held_tickers_are_excluded(self, abc_inputs):
        universe, mu, sigma = abc_inputs
        weights = MeanVarianceOptimizer().optimize(mu, sigma, 0.09)
        result = MarginalUtilityEngine().compute(weights, mu, sigma, universe, held={'B'})
        assert list(result) == ['A', 'C']

    def test_perturbing_into_c_changes_sharpe(self, abc_inputs):
        universe, mu, sigma = abc_inputs
        weights = MeanVarianceOptimizer().optimize(mu, sigma, 0.09)
        result = MarginalUtilityEngine().compute(weights, mu, sigma, universe, held={'B'})
        assert abs(result['C'].delta_sharpe) > 1e-8
        # Donor is A, the largest weight: C has lower mu, so the return falls
        assert result['C'].delta_sharpe < 0

    def test_moving_into_low_variance_asset_improves_cvar(self):
        mu = np.array([0.10, 0.10])
        sigma = np.diag([0.04, 0.01])
        result = MarginalUtilityEngine().compute(np.array([1.0, 0.0]), mu, sigma, ['X', 'Y'], held=set())
        assert result['Y'].delta_cvar > 0
        assert result['Y'].delta_sharpe > 0
        # X is the donor and the candidate at once: no change
        assert result['X'].delta_sharpe == pytest.approx(0.0)
        assert result['X'].delta_cvar == pytest.approx(0.0)

    def test_zero_variance_baseline_raises(self):
        mu = np.array([0.05, 0.10])
        sigma = np.diag([0.0, 0.04])
        with pytest.raises(DegenerateBaseline):
            MarginalUtilityEngine().compute(np.array([1.0, 0.0]), mu, sigma, ['CASH', 'EQ'], held=set())

    def test_unknown_donor_policy_raises(self):
        with pytest.raises(ValueError):
            MarginalUtilityEngine(donor_policy='lagrangian')

    def test_to_dict_uses_camel_case(self, abc_inputs):
        universe, mu, sigma = abc_inputs
        weights = MeanVarianceOptimizer().optimize(mu, sigma, 0.09)
        result = MarginalUtilityEngine().compute(weights, mu, sigma, universe, held=set())
        assert set(result['A'].to_dict()) == {'deltaSharpe', 'deltaCvar'}
