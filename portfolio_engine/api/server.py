"""FastAPI server for the portfolio recommendation engine."""

import logging
from typing import Dict, List, Optional, Type

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..config import configure_logging
from ..errors import (
    DegenerateBaseline,
    FeatureDimensionMismatch,
    IllConditionedCovariance,
    InfeasibleTarget,
    InsufficientHistory,
    InvalidTarget,
    NoUsableInstruments,
    RecommendationError,
    ScorerUnavailable,
)
from ..models import load_scorer
from ..pipeline import Holding, RecommendationEngine, RecommendationRequest

logger = logging.getLogger(__name__)

app = FastAPI(title="Portfolio Recommendation Engine API", version=__version__)


# Request/Response models
class HoldingModel(BaseModel):
    ticker: str
    shares: float = 0.0
    pricePaid: float = 0.0


class RecommendTradesRequest(BaseModel):
    holdings: List[HoldingModel] = []
    targetReturn: Optional[float] = None
    budget: Optional[float] = None


class Recommendation(BaseModel):
    ticker: str
    score: float
    price: float
    shares: int
    reason: str


class Baseline(BaseModel):
    expectedReturn: float
    volatility: float
    sharpe: float
    cvar: float


class RecommendTradesResponse(BaseModel):
    recommendations: List[Recommendation]
    featureOrder: List[str]
    schemaVersion: int
    baseline: Optional[Baseline] = None


STATUS_CODES: Dict[Type[RecommendationError], int] = {
    InvalidTarget: 400,
    InfeasibleTarget: 422,
    IllConditionedCovariance: 422,
    DegenerateBaseline: 422,
    InsufficientHistory: 503,
    NoUsableInstruments: 503,
    ScorerUnavailable: 503,
    FeatureDimensionMismatch: 500,
}


def status_for(exc: RecommendationError) -> int:
    for error_type, status in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status
    return 500


# Global engine (loaded on startup)
_engine: Optional[RecommendationEngine] = None


def load_engine():
    """Load the scorer and build the engine (called on startup)."""
    global _engine

    try:
        scorer = load_scorer()
    except (FileNotFoundError, ValueError, RecommendationError) as e:
        logger.warning("Scorer not loaded, /recommend-trades will return 503: %s", e)
        _engine = None
        return

    _engine = RecommendationEngine(scorer)


def set_engine(engine: Optional[RecommendationEngine]):
    """Install a prebuilt engine (embedding and tests)."""
    global _engine
    _engine = engine


@app.on_event("startup")
async def startup_event():
    """Load models on startup."""
    configure_logging()
    if _engine is None:
        load_engine()


@app.exception_handler(RecommendationError)
async def recommendation_error_handler(request: Request, exc: RecommendationError):
    status = status_for(exc)
    if status >= 500:
        logger.error("Recommendation failed: %s", exc)
    else:
        logger.info("Recommendation rejected: %s", exc)
    return JSONResponse(status_code=status, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={'error': 'invalid_request', 'message': 'Malformed request body', 'context': {'errors': jsonable_encoder(exc.errors())}},
    )


def get_engine() -> RecommendationEngine:
    """Dependency to get the recommendation engine."""
    if _engine is None:
        raise HTTPException(status_code=503, detail="Scorer not loaded. Train or export a model first.")
    return _engine


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Portfolio Recommendation Engine API",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "scorer_loaded": _engine is not None and _engine.scorer.is_loaded,
    }


@app.post("/recommend-trades", response_model=RecommendTradesResponse)
def recommend_trades(
    body: RecommendTradesRequest,
    engine: RecommendationEngine = Depends(get_engine)
):
    """
    Rank tickers the investor does not hold yet.

    Args:
        body: Holdings, target return and optional budget
        engine: Recommendation engine dependency

    Returns:
        Ranked recommendations, feature order and baseline metrics
    """
    request = RecommendationRequest(
        holdings=[
            Holding(ticker=h.ticker.strip().upper(), shares=h.shares, price_paid=h.pricePaid)
            for h in body.holdings
            if h.ticker.strip()
        ],
        target_return=float('nan') if body.targetReturn is None else body.targetReturn,
        budget=body.budget,
    )
    result = engine.recommend(request)
    return result.to_dict()


def create_app() -> FastAPI:
    """Create and return FastAPI app."""
    return app
