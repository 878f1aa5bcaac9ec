"""Feature matrix assembly for candidate scoring."""

import math
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .schema import CURRENT_SCHEMA, FEATURE_SCHEMA_V1, FeatureSchema
from ..data.fundamentals import FundamentalRow
from ..errors import FeatureDimensionMismatch
from ..portfolio.marginal import MarginalMetrics

# Every column a schema may name; the row builder fills exactly these
KNOWN_COLUMNS = frozenset(FEATURE_SCHEMA_V1.columns)


def _finite(value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


class FeatureAssembler:
    """Build one fixed-order numeric row per candidate."""

    def __init__(self, schema: FeatureSchema = CURRENT_SCHEMA):
        unknown = [c for c in schema.columns if c not in KNOWN_COLUMNS]
        if unknown:
            raise FeatureDimensionMismatch(
                "Feature schema names columns that cannot be built",
                {'schema_version': schema.version, 'unknown_columns': unknown}
            )
        self.schema = schema

    @property
    def feature_order(self) -> List[str]:
        return list(self.schema.columns)

    def build(
        self,
        candidates: Sequence[str],
        marginal_map: Mapping[str, MarginalMetrics],
        fundamentals: Mapping[str, FundamentalRow],
        target_return: float
    ) -> pd.DataFrame:
        """
        Assemble the feature matrix.

        Args:
            candidates: Tickers; row i corresponds to candidates[i]
            marginal_map: ticker -> MarginalMetrics
            fundamentals: ticker -> FundamentalRow
            target_return: Broadcast into every row as context

        Returns:
            DataFrame indexed by ticker with exactly the schema's columns.
            Missing or non-finite inputs are 0.
        """
        rows = [
            self._row(marginal_map.get(t), fundamentals.get(t), target_return)
            for t in candidates
        ]
        matrix = pd.DataFrame(rows, index=list(candidates), columns=self.feature_order, dtype=float)
        matrix.index.name = 'ticker'
        self.schema.validate_width(matrix.shape[1])
        return matrix

    def _row(
        self,
        marginal: Optional[MarginalMetrics],
        fundamental: Optional[FundamentalRow],
        target_return: float
    ) -> List[float]:
        values: Dict[str, float] = {
            'deltaSharpe': marginal.delta_sharpe if marginal else 0.0,
            'deltaCvar': marginal.delta_cvar if marginal else 0.0,
            'mom6': fundamental.mom6 if fundamental else 0.0,
            'mom12': fundamental.mom12 if fundamental else 0.0,
            'beta': fundamental.beta if fundamental else 0.0,
            'divYield': fundamental.div_yield if fundamental else 0.0,
            'logCap': fundamental.log_cap if fundamental else 0.0,
            'targetReturn': target_return,
        }
        return [_finite(values[column]) for column in self.feature_order]
