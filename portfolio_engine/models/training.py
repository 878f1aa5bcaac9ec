"""Offline training for the recommendation scorer.

Not used when serving requests; see scripts/train_scorer.py.

Each sample is one (portfolio, candidate) pair built from history up to a
cut date. The label is 1 when moving epsilon into the candidate raises the
portfolio's Sharpe ratio over the following ``forward_weeks`` weeks.
"""

import logging
from typing import Dict, List, Sequence, Tuple

import lightgbm as lgb
import numpy as np
import pandas as pd

from .scorer import ModelScorer
from ..data import FundamentalsAdapter, MarketDataProvider
from ..errors import RecommendationError
from ..features import CURRENT_SCHEMA, FeatureAssembler, FeatureSchema
from ..portfolio import MarginalUtilityEngine, MeanVarianceOptimizer, clean_weights
from ..stats import StatisticsEngine

logger = logging.getLogger(__name__)


def _aligned_dates(series_map: Dict[str, pd.DataFrame]) -> List:
    shared = None
    for df in series_map.values():
        dates = set(df['date'])
        shared = dates if shared is None else shared & dates
    return sorted(shared or [])


def _window(series_map: Dict[str, pd.DataFrame], start, end) -> Dict[str, pd.DataFrame]:
    window = {}
    for ticker, df in series_map.items():
        mask = df['date'] <= end
        if start is not None:
            mask &= df['date'] >= start
        window[ticker] = df[mask].reset_index(drop=True)
    return window


def build_training_set(
    market_data: MarketDataProvider,
    universe: Sequence[str],
    targets: Sequence[float],
    portfolios_per_cut: int = 4,
    forward_weeks: int = 26,
    step_weeks: int = 13,
    seed: int = 0,
    schema: FeatureSchema = CURRENT_SCHEMA
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Build (X, y) from rolling history/forward splits.

    Args:
        market_data: Source of weekly series and overviews
        universe: Tickers to sample portfolios from
        targets: Target returns to optimize for at every cut
        portfolios_per_cut: Random held sets drawn per (cut, target)
        forward_weeks: Length of the labelling window
        step_weeks: Spacing between cut dates
        seed: Seed for the held-set sampling
        schema: Feature schema for the matrix columns

    Returns:
        Feature matrix in schema order and 0/1 labels
    """
    rng = np.random.RandomState(seed)
    history_stats = StatisticsEngine()
    forward_stats = StatisticsEngine(min_observations=forward_weeks // 2)
    optimizer = MeanVarianceOptimizer()
    marginal = MarginalUtilityEngine()
    assembler = FeatureAssembler(schema)
    adapter = FundamentalsAdapter()

    series_map = market_data.get_multiple_weekly_series(list(universe))
    overviews = {}
    for ticker in series_map:
        try:
            overviews[ticker] = market_data.get_overview(ticker)
        except (ValueError, OSError) as e:
            logger.warning("Overview unavailable for %s: %s", ticker, e)
            overviews[ticker] = {}

    calendar = _aligned_dates(series_map)
    first_cut = history_stats.min_observations + 1
    frames: List[pd.DataFrame] = []
    labels: List[np.ndarray] = []

    for cut in range(first_cut, len(calendar) - forward_weeks, step_weeks):
        cut_date = calendar[cut]
        history = _window(series_map, None, cut_date)
        forward = _window(series_map, cut_date, calendar[cut + forward_weeks])

        try:
            past = history_stats.compute(history)
            future = forward_stats.compute(forward)
        except RecommendationError as e:
            logger.debug("Skipping cut %s: %s", cut_date, e)
            continue

        tickers = [t for t in past.universe if t in future.universe]
        if len(tickers) < 3:
            continue
        mu = past.mu[tickers].to_numpy()
        sigma = past.sigma.loc[tickers, tickers].to_numpy()
        mu_fwd = future.mu[tickers].to_numpy()
        sigma_fwd = future.sigma.loc[tickers, tickers].to_numpy()

        fundamentals = {t: adapter.normalize(t, overviews.get(t), history[t]) for t in tickers}

        for target in targets:
            try:
                weights = clean_weights(optimizer.optimize(mu, sigma, target), optimizer.tolerance)
            except RecommendationError as e:
                logger.debug("Skipping target %.3f at %s: %s", target, cut_date, e)
                continue

            for _ in range(portfolios_per_cut):
                n_held = rng.randint(0, len(tickers) // 2 + 1)
                held = set(rng.choice(tickers, size=n_held, replace=False)) if n_held else set()
                try:
                    now = marginal.compute(weights, mu, sigma, tickers, held)
                    later = marginal.compute(weights, mu_fwd, sigma_fwd, tickers, held)
                except RecommendationError as e:
                    logger.debug("Skipping portfolio at %s: %s", cut_date, e)
                    continue

                candidates = [t for t in tickers if t in now]
                X = assembler.build(candidates, now, fundamentals, target)
                frames.append(X.reset_index(drop=True))
                labels.append(np.array([1 if later[t].delta_sharpe > 0 else 0 for t in candidates]))

    if not frames:
        raise ValueError("No training samples could be built; try more history or other targets")

    X = pd.concat(frames, ignore_index=True)
    y = pd.Series(np.concatenate(labels), name='improves_sharpe')
    logger.info("Built %d training samples (positive rate %.2f)", len(X), float(y.mean()))
    return X, y


def train_lightgbm_scorer(
    X: pd.DataFrame,
    y: pd.Series,
    validation_split: float = 0.2,
    seed: int = 0,
    **kwargs
) -> ModelScorer:
    """
    Fit a LightGBM binary classifier; predictions are P(label == 1).

    Args:
        X: Feature matrix in schema order
        y: 0/1 labels (1 = the addition improved forward Sharpe)
        validation_split: Fraction held out for early stopping
        seed: Seed for the train/validation shuffle
        **kwargs: Overrides for the LightGBM parameters

    Returns:
        ModelScorer wrapping the trained booster
    """
    n_val = max(1, int(len(X) * validation_split))
    indices = np.random.RandomState(seed).permutation(len(X))
    train_idx = indices[:-n_val]
    val_idx = indices[-n_val:]

    train_data = lgb.Dataset(X.iloc[train_idx], label=y.iloc[train_idx])
    val_data = lgb.Dataset(X.iloc[val_idx], label=y.iloc[val_idx], reference=train_data)

    params = {
        'objective': 'binary',
        'metric': 'binary_logloss',
        'boosting_type': 'gbdt',
        'num_leaves': 15,
        'learning_rate': 0.05,
        'min_data_in_leaf': 10,
        'feature_fraction': 0.9,
        'bagging_fraction': 0.8,
        'bagging_freq': 5,
        'seed': seed,
        'verbose': -1
    }
    params.update(kwargs)

    model = lgb.train(
        params,
        train_data,
        valid_sets=[train_data, val_data],
        num_boost_round=500,
        callbacks=[lgb.early_stopping(stopping_rounds=50, verbose=False), lgb.log_evaluation(period=100)]
    )
    logger.info("Trained scorer: best iteration %s", model.best_iteration)
    return ModelScorer(model=model, model_type='lightgbm', feature_names=list(X.columns))
