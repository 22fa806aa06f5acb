"""
PURPOSE: Q-learning API routes for RugSense.

Thin HTTP surface over the DecisionService: tick ingestion, predictions,
recommendations, the game/bet lifecycle, statistics and training control.

CALLED BY:
    - Game feed relay (tick and lifecycle events)
    - Dashboard (predictions, stats, analytics)
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from rugsense.schemas.game import Decision, GameState, Prediction, TimingData
from rugsense.services.decision_service import DecisionService
from rugsense.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/qlearning", tags=["qlearning"])


class RecommendationRequest(BaseModel):
    game_state: GameState = Field(alias="gameState")
    timing: Optional[TimingData] = None
    bankroll: float = Field(default=1.0, gt=0.0)

    model_config = ConfigDict(populate_by_name=True)


class BetRequest(BaseModel):
    decision: Decision
    game_state: GameState = Field(alias="gameState")

    model_config = ConfigDict(populate_by_name=True)


class EndGameRequest(BaseModel):
    final_tick: int = Field(alias="finalTick", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class TrainingRequest(BaseModel):
    enabled: bool


def get_decision_service(request: Request) -> DecisionService:
    """Return the DecisionService created by the application lifespan."""
    return request.app.state.decision_service


def _raise_route_error(action: str, error: Exception) -> None:
    """Raise a consistent 500 response for route failures."""
    logger.error(
        "qlearning_route_failed",
        action=action,
        error=str(error),
        exception_type=type(error).__name__,
    )
    raise HTTPException(
        status_code=500,
        detail=f"Failed to {action}",
    )


# ════════════════════════════════════════════════════════════════
# Prediction
# ════════════════════════════════════════════════════════════════


@router.post("/tick", response_model=Prediction)
async def record_tick(
    game_state: GameState,
    service: DecisionService = Depends(get_decision_service),
):
    """
    PURPOSE: Record one tick of the game feed and return the updated prediction.

    CALLED BY: Game feed relay on every tick
    """
    try:
        return await service.record_tick(game_state)
    except Exception as e:
        _raise_route_error("record tick", e)


@router.get("/prediction")
async def get_prediction(service: DecisionService = Depends(get_decision_service)):
    """
    PURPOSE: Return the current prediction with timing data and half-Kelly stake.

    Returns:
        dict: prediction, timing, kelly_bet_size
    """
    return {
        "prediction": service.get_prediction(),
        "timing": service.timing_data(),
        "kelly_bet_size": service.prediction_engine.kelly_bet_size(),
    }


@router.post("/recommendation", response_model=Decision)
async def get_recommendation(
    body: RecommendationRequest,
    service: DecisionService = Depends(get_decision_service),
):
    """
    PURPOSE: Run the policy on a game state.

    CALLED BY: Dashboard and the betting bot
    """
    try:
        return await service.get_recommendation(body.game_state, body.timing, body.bankroll)
    except Exception as e:
        _raise_route_error("get recommendation", e)


# ════════════════════════════════════════════════════════════════
# Game Lifecycle
# ════════════════════════════════════════════════════════════════


@router.post("/games/{game_id}/start")
async def start_game(
    game_id: str,
    service: DecisionService = Depends(get_decision_service),
):
    try:
        started = await service.start_game(game_id)
    except Exception as e:
        _raise_route_error("start game", e)
    return {"game_id": game_id, "episode_started": started}


@router.post("/games/{game_id}/bet")
async def place_bet(
    game_id: str,
    body: BetRequest,
    service: DecisionService = Depends(get_decision_service),
):
    """
    PURPOSE: Place a side bet for a decision.

    Returns:
        dict: placed flag and the bet, null for HOLD or an already active bet
    """
    try:
        bet = await service.execute_bet(game_id, body.decision, body.game_state)
    except Exception as e:
        _raise_route_error("place bet", e)
    return {"game_id": game_id, "placed": bet is not None, "bet": bet}


@router.post("/games/{game_id}/end")
async def end_game(
    game_id: str,
    body: EndGameRequest,
    service: DecisionService = Depends(get_decision_service),
):
    """
    PURPOSE: Resolve the game's active bet against the final tick.

    CALLED BY: Game feed relay when a round rugs
    """
    try:
        bet = await service.end_game(game_id, body.final_tick)
    except Exception as e:
        _raise_route_error("end game", e)
    return {"game_id": game_id, "resolved": bet is not None, "bet": bet}


# ════════════════════════════════════════════════════════════════
# Statistics and Training
# ════════════════════════════════════════════════════════════════


@router.get("/stats")
async def get_stats(service: DecisionService = Depends(get_decision_service)):
    try:
        return await service.stats()
    except Exception as e:
        _raise_route_error("retrieve stats", e)


@router.get("/analytics")
async def get_analytics(service: DecisionService = Depends(get_decision_service)):
    try:
        return await service.analytics()
    except Exception as e:
        _raise_route_error("retrieve analytics", e)


@router.put("/training")
async def set_training(
    body: TrainingRequest,
    service: DecisionService = Depends(get_decision_service),
):
    service.set_training(body.enabled)
    return {"is_training": service.is_training}


@router.get("/health")
async def health(service: DecisionService = Depends(get_decision_service)):
    return {
        "status": "ok",
        "is_training": service.is_training,
        "active_bets": len(service.active_bets),
        "tick_samples": service.timing.sample_count,
    }
