"""
Portfolio Recommendation Engine

Recommends portfolio additions by measuring each candidate's marginal
effect on an investor's mean-variance optimal portfolio.
"""

__version__ = "0.1.0"
