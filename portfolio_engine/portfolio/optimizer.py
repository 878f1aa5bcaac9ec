"""Long-only mean-variance portfolio optimization."""

import logging
from typing import Optional

import numpy as np
from scipy.optimize import minimize

from ..config import get_config
from ..errors import IllConditionedCovariance, InfeasibleTarget, InvalidTarget

logger = logging.getLogger(__name__)

# SLSQP exit mode for "Inequality constraints incompatible"
_SLSQP_INCOMPATIBLE = 4


class MeanVarianceOptimizer:
    """
    Minimum-variance portfolio for a required expected return.

        minimize    w' Sigma w
        subject to  mu' w = target_return
                    sum(w) = 1
                    w_i >= 0

    Infeasible targets and broken covariance matrices are reported as
    errors; the returned vector is never rescaled to hide a failed solve.
    """

    def __init__(
        self,
        tolerance: Optional[float] = None,
        max_iter: Optional[int] = None,
        psd_tolerance: Optional[float] = None
    ):
        """
        Initialize optimizer.

        Args:
            tolerance: Allowed residual on equality constraints and on
                negative weights (1e-6)
            max_iter: SLSQP iteration limit
            psd_tolerance: Relative tolerance on negative eigenvalues of Sigma
        """
        config = get_config()
        self.tolerance = tolerance if tolerance is not None else config.get('optimizer.tolerance', 1e-6)
        self.max_iter = max_iter if max_iter is not None else config.get('optimizer.max_iter', 1000)
        self.psd_tolerance = psd_tolerance if psd_tolerance is not None else config.get('optimizer.psd_tolerance', 1e-10)

    def optimize(self, mu, sigma, target_return: float) -> np.ndarray:
        """
        Solve the long-only mean-variance program.

        Args:
            mu: Annualized expected returns (length n)
            sigma: Annualized covariance matrix (n x n)
            target_return: Required portfolio expected return

        Returns:
            Weight vector aligned with mu
        """
        mu = np.asarray(mu, dtype=float).ravel()
        sigma = np.asarray(sigma, dtype=float)
        n = mu.shape[0]

        if not np.isfinite(target_return):
            raise InvalidTarget("Target return must be a finite number", {'target_return': target_return})

        self._check_inputs(mu, sigma)
        self._check_target(mu, target_return)

        # Both equality constraints pin the only weight
        if n == 1:
            return np.ones(1)

        def objective(w):
            return w @ sigma @ w

        def gradient(w):
            return 2.0 * sigma @ w

        constraints = [
            {'type': 'eq', 'fun': lambda w: np.sum(w) - 1.0, 'jac': lambda w: np.ones(n)},
            {'type': 'eq', 'fun': lambda w: w @ mu - target_return, 'jac': lambda w: mu},
        ]

        result = minimize(
            objective,
            self._initial_guess(mu, target_return),
            jac=gradient,
            method='SLSQP',
            bounds=[(0.0, None)] * n,
            constraints=constraints,
            options={'maxiter': self.max_iter, 'ftol': 1e-12}
        )

        weights = np.asarray(result.x, dtype=float)

        if not result.success:
            context = {
                'status': int(result.status),
                'solver_message': str(result.message),
                'target_return': target_return,
                'n': n,
            }
            if result.status == _SLSQP_INCOMPATIBLE:
                raise InfeasibleTarget("Constraints are incompatible for this target return", context)
            raise IllConditionedCovariance("Quadratic program failed to converge", context)

        self._check_solution(weights, mu, target_return)

        logger.debug(
            "Optimized %d weights for target %.4f in %d iterations",
            n, target_return, result.nit
        )
        return weights

    def _check_inputs(self, mu: np.ndarray, sigma: np.ndarray) -> None:
        n = mu.shape[0]
        if n == 0:
            raise IllConditionedCovariance("Cannot optimize an empty universe", {'n': 0})
        if sigma.shape != (n, n):
            raise IllConditionedCovariance(
                "Covariance shape does not match expected returns",
                {'sigma_shape': sigma.shape, 'mu_length': n}
            )
        if not np.all(np.isfinite(mu)):
            raise InfeasibleTarget(
                "Expected returns contain non-finite values",
                {'bad_indices': np.flatnonzero(~np.isfinite(mu)).tolist()}
            )
        if not np.all(np.isfinite(sigma)):
            raise IllConditionedCovariance(
                "Covariance contains non-finite values",
                {'bad_entries': int((~np.isfinite(sigma)).sum())}
            )

        asymmetry = float(np.max(np.abs(sigma - sigma.T)))
        scale = max(1.0, float(np.max(np.abs(sigma))))
        if asymmetry > 1e-10 * scale:
            raise IllConditionedCovariance("Covariance matrix is not symmetric", {'max_asymmetry': asymmetry})

        eigenvalues = np.linalg.eigvalsh(sigma)
        eig_scale = max(1.0, float(np.max(np.abs(eigenvalues))))
        min_eig = float(eigenvalues.min())
        if min_eig < -self.psd_tolerance * eig_scale:
            raise IllConditionedCovariance(
                "Covariance matrix is not positive semi-definite",
                {'min_eigenvalue': min_eig, 'n': n}
            )

    def _check_target(self, mu: np.ndarray, target_return: float) -> None:
        low, high = float(mu.min()), float(mu.max())
        if target_return > high + self.tolerance or target_return < low - self.tolerance:
            raise InfeasibleTarget(
                "Target return is outside the long-only achievable range",
                {'target_return': target_return, 'min_achievable': low, 'max_achievable': high}
            )

    def _initial_guess(self, mu: np.ndarray, target_return: float) -> np.ndarray:
        """Feasible start: equal weights blended toward the extreme asset."""
        n = mu.shape[0]
        w0 = np.full(n, 1.0 / n)
        mean = float(mu.mean())
        extreme = int(np.argmax(mu)) if target_return >= mean else int(np.argmin(mu))
        gap = float(mu[extreme]) - mean
        if abs(gap) > 0:
            t = min(max((target_return - mean) / gap, 0.0), 1.0)
            w0 = (1.0 - t) * w0
            w0[extreme] += t
        return w0

    def _check_solution(self, weights: np.ndarray, mu: np.ndarray, target_return: float) -> None:
        budget_residual = abs(float(weights.sum()) - 1.0)
        return_residual = abs(float(weights @ mu) - target_return)
        min_weight = float(weights.min())

        if budget_residual > self.tolerance:
            raise InfeasibleTarget(
                "Solution violates the budget constraint",
                {'constraint': 'sum(w) = 1', 'residual': budget_residual}
            )
        if return_residual > self.tolerance:
            raise InfeasibleTarget(
                "Solution violates the return constraint",
                {'constraint': 'mu.w = target', 'residual': return_residual, 'target_return': target_return}
            )
        if min_weight < -self.tolerance:
            raise InfeasibleTarget(
                "Solution violates non-negativity",
                {'constraint': 'w >= 0', 'min_weight': min_weight}
            )


def clean_weights(weights, tolerance: float = 1e-6) -> np.ndarray:
    """
    Clamp solver noise below zero and re-normalize to sum to one.

    Components more negative than ``tolerance`` are real violations, not
    noise, and raise InfeasibleTarget.
    """
    weights = np.asarray(weights, dtype=float)
    if np.any(weights < -tolerance):
        raise InfeasibleTarget(
            "Weight vector has materially negative components",
            {'min_weight': float(weights.min())}
        )
    weights = np.clip(weights, 0.0, None)
    total = float(weights.sum())
    if total <= 0:
        raise InfeasibleTarget("Weight vector sums to zero", {'sum': total})
    return weights / total
