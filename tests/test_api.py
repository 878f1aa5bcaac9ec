"""
Tests for api/server.py using FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import DeltaSharpeScorer, FailingScorer
from portfolio_engine.api.server import app, set_engine
from portfolio_engine.pipeline import RecommendationEngine
from portfolio_engine.stats import StatisticsEngine


@pytest.fixture
def client():
    yield TestClient(app)
    set_engine(None)


@pytest.fixture
def target(universe_series):
    mu = StatisticsEngine().compute(universe_series).mu
    return float((mu.min() + mu.max()) / 2)


class TestRecommendTrades:
    """Tests for POST /recommend-trades."""

    def test_success(self, client, static_provider, target):
        set_engine(RecommendationEngine(DeltaSharpeScorer(), market_data=static_provider))
        response = client.post('/recommend-trades', json={
            'holdings': [{'ticker': 'aaa', 'shares': 5, 'pricePaid': 90.0}],
            'targetReturn': target,
            'budget': 6000,
        })

        assert response.status_code == 200
        body = response.json()
        assert [r['ticker'] for r in body['recommendations']].count('AAA') == 0
        assert len(body['recommendations']) == 3
        assert len(body['featureOrder']) == 8
        assert body['schemaVersion'] == 1
        assert 'baseline' in body

    def test_infinite_budget_ranks_without_sizing(self, client, static_provider, target):
        set_engine(RecommendationEngine(DeltaSharpeScorer(), market_data=static_provider))
        response = client.post(
            '/recommend-trades',
            content='{"holdings": [], "targetReturn": %r, "budget": Infinity}' % target,
            headers={'Content-Type': 'application/json'},
        )

        assert response.status_code == 200
        recommendations = response.json()['recommendations']
        assert len(recommendations) == 3
        assert all(r['shares'] == 0 for r in recommendations)

    def test_missing_target_is_400(self, client, static_provider):
        set_engine(RecommendationEngine(DeltaSharpeScorer(), market_data=static_provider))
        response = client.post('/recommend-trades', json={'holdings': []})
        assert response.status_code == 400
        assert response.json()['error'] == 'invalid_target'

    def test_malformed_body_is_400(self, client, static_provider):
        set_engine(RecommendationEngine(DeltaSharpeScorer(), market_data=static_provider))
        response = client.post('/recommend-trades', json={'holdings': 'AAA', 'targetReturn': 0.08})
        assert response.status_code == 400
        assert response.json()['error'] == 'invalid_request'

    def test_infeasible_target_is_422(self, client, static_provider):
        set_engine(RecommendationEngine(DeltaSharpeScorer(), market_data=static_provider))
        response = client.post('/recommend-trades', json={'holdings': [], 'targetReturn': 5.0})
        assert response.status_code == 422
        body = response.json()
        assert body['error'] == 'infeasible_target'
        assert 'max_achievable' in body['context']

    def test_scorer_failure_is_503(self, client, static_provider, target):
        set_engine(RecommendationEngine(FailingScorer(), market_data=static_provider))
        response = client.post('/recommend-trades', json={'holdings': [], 'targetReturn': target})
        assert response.status_code == 503
        assert response.json()['error'] == 'scorer_unavailable'

    def test_no_engine_is_503(self, client):
        set_engine(None)
        response = client.post('/recommend-trades', json={'holdings': [], 'targetReturn': 0.08})
        assert response.status_code == 503


class TestInfoEndpoints:
    """Tests for GET / and GET /health."""

    def test_root(self, client):
        assert client.get('/').json()['status'] == 'running'

    def test_health_reports_loaded_state_only(self, client, static_provider, monkeypatch):
        def unreachable():
            raise AssertionError("health must not call the market data provider")

        monkeypatch.setattr(static_provider, 'health_check', unreachable)
        set_engine(RecommendationEngine(DeltaSharpeScorer(), market_data=static_provider))
        body = client.get('/health').json()
        assert body == {'status': 'healthy', 'scorer_loaded': True}

    def test_health_without_engine(self, client):
        set_engine(None)
        assert client.get('/health').json()['scorer_loaded'] is False
