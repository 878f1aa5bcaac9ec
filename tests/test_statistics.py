"""
Tests for stats/statistics.py

Covers calendar alignment, the sufficiency filter and annualization.
"""

from datetime import timedelta

import numpy as np
import pytest

from conftest import START_DATE, make_series, random_walk
from portfolio_engine.errors import InsufficientHistory, NoUsableInstruments
from portfolio_engine.stats import StatisticsEngine


class TestCalendar:
    """Tests for aligned-date handling."""

    def test_fewer_than_three_aligned_dates_raises(self):
        engine = StatisticsEngine()
        series = {
            'AAA': make_series([100.0, 101.0]),
            'BBB': make_series([50.0, 49.0]),
        }
        with pytest.raises(InsufficientHistory) as exc_info:
            engine.compute(series)
        assert exc_info.value.context['aligned_dates'] == 2
        assert exc_info.value.context['required'] == 3

    def test_disjoint_calendars_raise_insufficient_history(self):
        """Offset calendars leave no shared dates."""
        engine = StatisticsEngine(min_observations=1)
        series = {
            'AAA': make_series(random_walk(1, weeks=40)),
            'BBB': make_series(random_walk(2, weeks=40), start=START_DATE + timedelta(days=3)),
        }
        with pytest.raises(InsufficientHistory):
            engine.compute(series)

    def test_only_shared_dates_are_used(self):
        engine = StatisticsEngine(min_observations=5)
        series = {
            'AAA': make_series(random_walk(1, weeks=40)),
            'BBB': make_series(random_walk(2, weeks=30), start=START_DATE + timedelta(weeks=10)),
        }
        stats = engine.compute(series)
        assert len(stats.calendar) == 30
        assert stats.calendar[0] == START_DATE + timedelta(weeks=10)
        assert len(stats.returns) == 29

    def test_empty_series_map_raises_no_usable(self):
        with pytest.raises(NoUsableInstruments):
            StatisticsEngine().compute({})


class TestSufficiencyFilter:
    """Tests for dropping tickers with too little valid history."""

    def test_ticker_below_min_observations_is_dropped(self):
        engine = StatisticsEngine(min_observations=30)
        sparse = random_walk(2, weeks=40)
        for i in range(0, 30):
            sparse[i] = float('nan')
        series = {
            'AAA': make_series(random_walk(1, weeks=40)),
            'BBB': make_series(sparse),
        }
        stats = engine.compute(series)
        assert stats.universe == ['AAA']
        assert 'BBB' in stats.dropped
        assert list(stats.mu.index) == ['AAA']

    def test_non_positive_close_invalidates_both_adjacent_returns(self):
        engine = StatisticsEngine(min_observations=1)
        closes = [100.0, 101.0, 0.0, 102.0, 103.0]
        stats = engine.compute({'AAA': make_series(closes)})
        # Returns 1->2 and 2->3 touch the zero close and count as 0
        returns = stats.returns['AAA'].to_numpy()
        assert returns[1] == 0.0
        assert returns[2] == 0.0
        assert returns[0] == pytest.approx(0.01)
        assert returns[3] == pytest.approx(1.0 / 102.0)

    def test_missing_last_close_drops_ticker(self):
        engine = StatisticsEngine(min_observations=1)
        closes = random_walk(2, weeks=40)
        closes[-1] = float('nan')
        series = {
            'AAA': make_series(random_walk(1, weeks=40)),
            'BBB': make_series(closes),
        }
        stats = engine.compute(series)
        assert stats.universe == ['AAA']
        assert stats.dropped['BBB'] == "no close on last aligned date"

    def test_every_ticker_dropped_raises_no_usable(self):
        engine = StatisticsEngine(min_observations=100)
        with pytest.raises(NoUsableInstruments):
            engine.compute({'AAA': make_series(random_walk(1, weeks=40))})


class TestAnnualization:
    """Tests for mu and sigma annualization."""

    def test_mu_is_compounded_from_mean_weekly_return(self):
        engine = StatisticsEngine(min_observations=5)
        closes = [100.0 * 1.01 ** k for k in range(40)]
        stats = engine.compute({'AAA': make_series(closes)})
        assert stats.mu['AAA'] == pytest.approx(1.01 ** 52 - 1, rel=1e-9)
        # Compounding differs from linear scaling
        assert stats.mu['AAA'] != pytest.approx(0.01 * 52, rel=1e-3)
        assert stats.sigma.loc['AAA', 'AAA'] == pytest.approx(0.0, abs=1e-15)

    def test_sigma_is_sample_covariance_times_52(self, universe_series):
        stats = StatisticsEngine().compute(universe_series)
        closes = universe_series['AAA']['close'].to_numpy()
        weekly = closes[1:] / closes[:-1] - 1
        assert stats.sigma.loc['AAA', 'AAA'] == pytest.approx(np.var(weekly, ddof=1) * 52, rel=1e-9)
        assert np.allclose(stats.sigma.to_numpy(), stats.sigma.to_numpy().T)

    def test_universe_keeps_input_order_and_latest_prices(self, universe_series):
        stats = StatisticsEngine().compute(universe_series)
        assert stats.universe == ['AAA', 'BBB', 'CCC', 'DDD']
        for ticker in stats.universe:
            assert stats.latest_prices[ticker] == pytest.approx(universe_series[ticker]['close'].iloc[-1])
