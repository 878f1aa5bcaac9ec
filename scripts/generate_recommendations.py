"""Script to generate recommendations for a set of holdings."""

import sys
from pathlib import Path
from typing import List

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from portfolio_engine.config import configure_logging, get_config
from portfolio_engine.errors import RecommendationError
from portfolio_engine.models import load_scorer
from portfolio_engine.pipeline import Holding, RecommendationEngine, RecommendationRequest


def parse_holding(text: str) -> Holding:
    """Parse ``TICKER[:SHARES[:PRICE]]``."""
    parts = text.split(':')
    if not parts[0].strip() or len(parts) > 3:
        raise ValueError(f"Invalid holding: {text!r} (expected TICKER[:SHARES[:PRICE]])")
    shares = float(parts[1]) if len(parts) > 1 and parts[1] else 0.0
    price = float(parts[2]) if len(parts) > 2 and parts[2] else 0.0
    return Holding(ticker=parts[0].strip().upper(), shares=shares, price_paid=price)


def main(target_return: float, budget: float = 0.0, holdings: List[str] = None, check_data: bool = False):
    """
    Generate recommendations for an investor.

    Args:
        target_return: Target annual portfolio return
        budget: Cash to deploy across the suggestions
        holdings: Holdings as TICKER[:SHARES[:PRICE]] strings
        check_data: Verify the market data provider answers before running
    """
    configure_logging()
    config = get_config()

    try:
        scorer = load_scorer(config)
    except FileNotFoundError:
        print("\nScorer model not found. Please train the model first:")
        print("  python scripts/train_scorer.py")
        return 1

    request = RecommendationRequest(
        holdings=[parse_holding(h) for h in holdings or []],
        target_return=target_return,
        budget=budget,
    )

    print(f"Target return: {target_return:.2%}")
    print(f"Budget: ${request.budget:,.2f}")
    print(f"Holdings: {', '.join(request.held_tickers) or 'none'}")

    engine = RecommendationEngine(scorer)
    if check_data and not engine.market_data.health_check():
        print("\n❌ Market data provider is not reachable")
        return 3

    try:
        result = engine.recommend(request)
    except RecommendationError as e:
        print(f"\n❌ {type(e).__name__}: {e}")
        return 2

    if result.baseline is not None:
        b = result.baseline
        print("\n" + "=" * 80)
        print("OPTIMAL PORTFOLIO FOR TARGET")
        print("=" * 80)
        print(f"Expected return: {b.expected_return:.2%}   Volatility: {b.volatility:.2%}   "
              f"Sharpe: {b.sharpe:.2f}   CVaR(95%): {b.cvar:.2%}")

    if not result.recommendations:
        print("\nNo recommendations: every usable ticker is already held.")
        return 0

    print("\n" + "=" * 80)
    print("RECOMMENDATIONS")
    print("=" * 80)
    print(f"{'Rank':<6} {'Ticker':<8} {'Score':<10} {'Price':<12} {'Shares':<8} {'Amount':<12}")
    print("-" * 80)
    for rank, s in enumerate(result.recommendations, start=1):
        price_str = f"${s.price:>9.2f}" if s.price > 0 else "       N/A"
        amount = s.shares * s.price
        amount_str = f"${amount:>10,.0f}" if amount > 0 else "         -"
        print(f"{rank:<6} {s.ticker:<8} {s.score:<10.4f} {price_str:<12} {s.shares:<8} {amount_str:<12}")

    print(f"\nReason: {result.recommendations[0].reason}")
    print(f"Feature order (v{result.schema_version}): {', '.join(result.feature_order)}")
    return 0


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Generate portfolio addition recommendations')
    parser.add_argument('--target-return', type=float, required=True, help='Target annual return, e.g. 0.08')
    parser.add_argument('--budget', type=float, default=0.0, help='Cash to deploy in dollars')
    parser.add_argument('--holding', action='append', default=[], metavar='TICKER[:SHARES[:PRICE]]',
                        help='Current holding (repeatable)')
    parser.add_argument('--check-data', action='store_true', help='Check the market data provider first')

    args = parser.parse_args()
    sys.exit(main(args.target_return, args.budget, args.holding, args.check_data))
