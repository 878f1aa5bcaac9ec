"""Feature engineering modules."""

from .assembler import FeatureAssembler
from .schema import CURRENT_SCHEMA, FEATURE_SCHEMA_V1, FeatureSchema

__all__ = ['FeatureAssembler', 'FeatureSchema', 'FEATURE_SCHEMA_V1', 'CURRENT_SCHEMA']
