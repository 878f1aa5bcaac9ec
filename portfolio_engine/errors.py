"""Error taxonomy for the recommendation pipeline.

Every error is terminal for the request that raised it. Each one carries a
machine-readable ``code`` and a ``context`` dict naming the instrument,
dimension or constraint involved.
"""

import math
from typing import Any, Dict, Optional


def _json_safe(value: Any) -> Any:
    """Render NaN and infinities as strings so the payload stays valid JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    return value


class RecommendationError(Exception):
    """Base class for all pipeline failures."""

    code = "recommendation_error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        """Structured payload for logs and API responses."""
        return {
            'error': self.code,
            'message': self.message,
            'context': _json_safe(self.context),
        }

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class InsufficientHistory(RecommendationError):
    """Fewer aligned calendar dates than needed to form returns."""

    code = "insufficient_history"


class NoUsableInstruments(RecommendationError):
    """No instrument survived data-sufficiency filtering."""

    code = "no_usable_instruments"


class InfeasibleTarget(RecommendationError):
    """Target return cannot be reached by a long-only, fully invested portfolio."""

    code = "infeasible_target"


class IllConditionedCovariance(RecommendationError):
    """Covariance matrix is malformed, not PSD, or broke the solver."""

    code = "ill_conditioned_covariance"


class DegenerateBaseline(RecommendationError):
    """Portfolio variance is ~0 so Sharpe/CVaR are undefined."""

    code = "degenerate_baseline"


class FeatureDimensionMismatch(RecommendationError):
    """Feature matrix does not match the scorer's column contract."""

    code = "feature_dimension_mismatch"


class InvalidTarget(RecommendationError):
    """Requested target return is not a finite number."""

    code = "invalid_target"


class ScorerUnavailable(RecommendationError):
    """Scorer failed, timed out, or returned a malformed score vector."""

    code = "scorer_unavailable"
