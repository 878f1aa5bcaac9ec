"""Scorer implementations and factory."""

import json
import logging
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

from .base_model import Scorer
from ..config import Config, get_config
from ..features.schema import CURRENT_SCHEMA, FeatureSchema

logger = logging.getLogger(__name__)


class ModelScorer(Scorer):
    """Scorer backed by a pickled gradient-boosting model.

    The pickle holds ``{model, model_type, feature_names, is_trained}``.
    LightGBM boosters are evaluated at their best iteration; any other
    estimator only needs a ``predict`` method.
    """

    def __init__(self, model=None, model_type: str = 'lightgbm', feature_names: Optional[List[str]] = None):
        super().__init__(model_type)
        self.model = model
        self.feature_names = list(feature_names) if feature_names is not None else None

    def predict(self, X: pd.DataFrame) -> pd.Series:
        if self.model is None:
            raise ValueError("Model must be loaded before prediction")

        # Ensure feature order matches training
        if self.feature_names:
            missing_features = set(self.feature_names) - set(X.columns)
            if missing_features:
                raise ValueError(f"Missing features: {missing_features}")
            X = X[self.feature_names]

        best_iteration = getattr(self.model, 'best_iteration', None)
        if self.model_type == 'lightgbm' and best_iteration:
            predictions = self.model.predict(X, num_iteration=best_iteration)
        else:
            predictions = self.model.predict(X)

        return pd.Series(np.asarray(predictions, dtype=float).ravel(), index=X.index)


class OnnxScorer(Scorer):
    """Scorer backed by an ONNX graph evaluated with onnxruntime on CPU."""

    def __init__(self, feature_names: Optional[List[str]] = None):
        super().__init__('onnx')
        self.feature_names = list(feature_names) if feature_names is not None else None
        self._input_name: Optional[str] = None
        self._output_name: Optional[str] = None

    def load(self, filepath: str):
        import onnxruntime as ort

        self.model = ort.InferenceSession(str(filepath), providers=['CPUExecutionProvider'])
        self._input_name = self.model.get_inputs()[0].name
        self._output_name = self.model.get_outputs()[0].name

    def predict(self, X: pd.DataFrame) -> pd.Series:
        if self.model is None:
            raise ValueError("ONNX session must be loaded before prediction")
        tensor = np.ascontiguousarray(X.to_numpy(dtype=np.float32))
        outputs = self.model.run([self._output_name], {self._input_name: tensor})
        return pd.Series(np.asarray(outputs[0], dtype=float).ravel(), index=X.index)


def read_columns(columns_path: str) -> List[str]:
    """Read a scorer's expected column list from a JSON array file."""
    with open(columns_path, 'r') as f:
        columns = json.load(f)
    if not isinstance(columns, list) or not all(isinstance(c, str) for c in columns):
        raise ValueError(f"Columns file must hold a JSON list of strings: {columns_path}")
    return columns


def load_scorer(config: Optional[Config] = None, schema: FeatureSchema = CURRENT_SCHEMA) -> Scorer:
    """
    Load the configured scorer and check it against the feature schema.

    Args:
        config: Configuration (defaults to the global config)
        schema: Feature schema the scorer must have been trained on

    Returns:
        Loaded Scorer
    """
    config = config or get_config()
    scorer_type = config.get('models.scorer.type', 'lightgbm')
    model_path = Path(config.get('models.scorer.path', 'models/saved/recommend_model.pkl'))
    columns_path = config.get('models.scorer.columns_path')

    if not model_path.exists():
        raise FileNotFoundError(f"Scorer model not found: {model_path}")

    if scorer_type == 'onnx':
        scorer: Scorer = OnnxScorer()
        scorer.load(str(model_path))
    elif scorer_type in ('lightgbm', 'pickle'):
        scorer = ModelScorer(model_type=scorer_type)
        scorer.load(str(model_path))
    else:
        raise ValueError(f"Unsupported scorer type: {scorer_type}")

    if columns_path and Path(columns_path).exists():
        scorer.feature_names = read_columns(columns_path)

    schema.validate_columns(scorer.feature_names)
    logger.info(
        "Loaded %s scorer from %s (schema v%d, %d columns)",
        scorer_type, model_path, schema.version, len(schema)
    )
    return scorer
