"""Script to train the recommendation scorer."""

import json
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from portfolio_engine.config import configure_logging, get_config
from portfolio_engine.data import get_market_data_provider
from portfolio_engine.features import CURRENT_SCHEMA
from portfolio_engine.models.training import build_training_set, train_lightgbm_scorer


def main(targets=None, forward_weeks: int = 26, seed: int = 0):
    """Train the scorer on rolling history/forward splits of the universe."""
    configure_logging()
    config = get_config()

    provider = config.market_data_provider
    if provider == 'mock':
        print("ℹ️  Using mock data provider - instant training with synthetic data")
    else:
        print(f"⚠️  {provider} may have rate limits. Fetching history will take time.")

    tickers = config.universe
    targets = targets or [0.04, 0.06, 0.08, 0.10, 0.12]
    print(f"Universe: {', '.join(tickers)}")
    print(f"Targets: {', '.join(f'{t:.0%}' for t in targets)}")

    print("\nPreparing training data...")
    X, y = build_training_set(
        get_market_data_provider(),
        tickers,
        targets,
        forward_weeks=forward_weeks,
        seed=seed,
        schema=CURRENT_SCHEMA
    )
    print(f"Training samples: {len(X)}")
    print(f"Features: {len(X.columns)} (schema v{CURRENT_SCHEMA.version})")
    print(f"Positive rate: {y.mean():.2%}")

    print("\nTraining model...")
    scorer = train_lightgbm_scorer(X, y, validation_split=0.2, seed=seed)

    model_path = Path(config.get('models.scorer.path', 'models/saved/recommend_model.pkl'))
    columns_path = Path(config.get('models.scorer.columns_path', 'models/saved/recommend_columns.json'))
    scorer.save(str(model_path))
    columns_path.parent.mkdir(parents=True, exist_ok=True)
    with open(columns_path, 'w') as f:
        json.dump(scorer.feature_names, f, indent=2)

    print(f"\nModel saved to: {model_path}")
    print(f"Columns saved to: {columns_path}")
    print("Training complete!")


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Train the recommendation scorer')
    parser.add_argument('--target', type=float, action='append', dest='targets',
                        help='Target annual return to sample (repeatable)')
    parser.add_argument('--forward-weeks', type=int, default=26, help='Labelling window in weeks')
    parser.add_argument('--seed', type=int, default=0, help='Random seed')

    args = parser.parse_args()
    main(args.targets, args.forward_weeks, args.seed)
