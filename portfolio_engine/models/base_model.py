"""Base classes for scoring models."""

from abc import ABC, abstractmethod
import pickle
from pathlib import Path
from typing import Any, List, Optional
import pandas as pd


class Scorer(ABC):
    """Opaque scoring model: feature matrix -> one score per row."""

    def __init__(self, model_type: str):
        """
        Initialize base scorer.

        Args:
            model_type: Type of model ('lightgbm', 'onnx', ...)
        """
        self.model_type = model_type
        self.model: Any = None
        self.feature_names: Optional[List[str]] = None

    @property
    def is_loaded(self) -> bool:
        return self.model is not None

    @abstractmethod
    def predict(self, X: pd.DataFrame) -> pd.Series:
        """
        Score a feature matrix.

        Args:
            X: Feature matrix, columns in the scorer's training order

        Returns:
            One score per row, indexed like X
        """
        pass

    def save(self, filepath: str):
        """Save model to disk."""
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)

        model_data = {
            'model': self.model,
            'model_type': self.model_type,
            'feature_names': self.feature_names,
            'is_trained': self.model is not None
        }

        with open(filepath, 'wb') as f:
            pickle.dump(model_data, f)

    def load(self, filepath: str):
        """Load model from disk."""
        with open(filepath, 'rb') as f:
            model_data = pickle.load(f)

        self.model = model_data['model']
        self.model_type = model_data.get('model_type', self.model_type)
        self.feature_names = model_data.get('feature_names')
