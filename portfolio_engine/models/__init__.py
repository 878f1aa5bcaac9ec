"""Scoring model adapters."""

from .base_model import Scorer
from .scorer import ModelScorer, OnnxScorer, load_scorer

__all__ = ['Scorer', 'ModelScorer', 'OnnxScorer', 'load_scorer']
