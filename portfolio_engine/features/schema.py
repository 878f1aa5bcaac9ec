"""Versioned column contract shared with the external scorer."""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from ..errors import FeatureDimensionMismatch


@dataclass(frozen=True)
class FeatureSchema:
    """Ordered feature columns plus a version number.

    Any change to the columns (including reordering) requires a new version.
    """
    version: int
    columns: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.columns)

    def validate_width(self, width: int) -> None:
        """Fail when a matrix does not have exactly one column per feature."""
        if width != len(self.columns):
            raise FeatureDimensionMismatch(
                "Feature dimension mismatch",
                {
                    'schema_version': self.version,
                    'expected': len(self.columns),
                    'got': width,
                }
            )

    def validate_columns(self, expected: Optional[Sequence[str]]) -> None:
        """Fail when a scorer expects a different column list.

        ``expected=None`` means the scorer does not publish its columns; only
        the width check applies then.
        """
        if expected is None:
            return
        expected = tuple(expected)
        self.validate_width(len(expected))
        if expected != self.columns:
            raise FeatureDimensionMismatch(
                "Scorer column order differs from the feature schema",
                {
                    'schema_version': self.version,
                    'schema_columns': list(self.columns),
                    'scorer_columns': list(expected),
                }
            )


FEATURE_SCHEMA_V1 = FeatureSchema(
    version=1,
    columns=(
        'deltaSharpe',
        'deltaCvar',
        'mom6',
        'mom12',
        'beta',
        'divYield',
        'logCap',
        'targetReturn',
    ),
)

CURRENT_SCHEMA = FEATURE_SCHEMA_V1
