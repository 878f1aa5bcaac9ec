"""Ranking of scored candidates and share sizing."""

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from ..config import get_config

DEFAULT_REASON = "High P(improve Sharpe) for your target"


@dataclass(frozen=True)
class Suggestion:
    """One recommended addition."""
    ticker: str
    score: float
    price: float
    shares: int
    reason: str

    def to_dict(self) -> Dict:
        return {
            'ticker': self.ticker,
            'score': self.score,
            'price': self.price,
            'shares': self.shares,
            'reason': self.reason,
        }


class Ranker:
    """Order candidates by score and size the top K within a budget."""

    def __init__(self, top_k: Optional[int] = None, reason: Optional[str] = None):
        config = get_config()
        self.top_k = top_k if top_k is not None else config.get('ranking.top_k', 5)
        self.reason = reason or config.get('ranking.reason', DEFAULT_REASON)

    def rank(
        self,
        candidates: Sequence[str],
        scores: Sequence[float],
        prices: Mapping[str, float],
        budget: float = 0.0,
        reasons: Optional[Mapping[str, str]] = None
    ) -> List[Suggestion]:
        """
        Rank candidates and convert the top K into share suggestions.

        Args:
            candidates: Tickers, in the order the scores were produced
            scores: One score per candidate
            prices: Last known price per ticker (missing or non-positive = unknown)
            budget: Cash to deploy; <= 0 or non-finite means ranking only
            reasons: Optional per-ticker explanation overriding the default

        Returns:
            Suggestions ordered by descending score (ties keep candidate order)
        """
        if len(candidates) != len(scores):
            raise ValueError(f"Got {len(scores)} scores for {len(candidates)} candidates")

        # sorted() is stable, so equal scores keep candidate order
        order = sorted(range(len(candidates)), key=lambda i: -float(scores[i]))
        k = min(self.top_k, len(order))
        top = order[:k]

        if not math.isfinite(budget) or budget <= 0:
            budget = 0.0
        bucket = budget / k if budget > 0 and k > 0 else 0.0
        reasons = reasons or {}

        suggestions = []
        for i in top:
            ticker = candidates[i]
            price = float(prices.get(ticker) or 0.0)
            if not math.isfinite(price) or price <= 0:
                price = 0.0
            shares = int(math.floor(bucket / price)) if bucket > 0 and price > 0 else 0
            suggestions.append(Suggestion(
                ticker=ticker,
                score=float(scores[i]),
                price=price,
                shares=shares,
                reason=reasons.get(ticker, self.reason),
            ))
        return suggestions
