"""
Predictions router.

Cached prediction reads, price history, stakes and positions, plus admin
lifecycle operations (create, resolve, cancel, active-set pruning).
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import ValidationError as PydanticValidationError

from api.dependencies import get_position_repository, get_prediction_repository
from api.dependencies import get_price_history as price_history_dependency
from api.schemas.predictions import PricePointRequest, ResolveRequest
from api.utils.auth import verify_admin_key
from api.utils.exceptions import ResourceNotFoundException
from swipesync.db.models import PredictionRecord, UserPosition
from swipesync.db.repositories import PositionRepository, PredictionRepository
from swipesync.services.price_history import PriceHistoryLedger
from swipesync.utils.errors import ValidationError
from swipesync.utils.validation import require_address, require_prediction_id

router = APIRouter(prefix="/predictions", tags=["predictions"])


@router.get("/active", summary="Active predictions")
def list_active(predictions: PredictionRepository = Depends(get_prediction_repository)):
    records = predictions.list_active()
    return {"success": True, "count": len(records), "data": [r.to_document() for r in records]}


@router.get("", summary="Page through every cached prediction", dependencies=[Depends(verify_admin_key)])
def list_all(
    cursor: int = Query(0, ge=0),
    count: Optional[int] = Query(None, ge=1, le=1000),
    predictions: PredictionRepository = Depends(get_prediction_repository),
):
    records, next_cursor = predictions.list_all(cursor, count)
    return {
        "success": True,
        "data": [r.to_document() for r in records],
        "nextCursor": next_cursor,
        "done": next_cursor == 0,
    }


@router.post(
    "",
    summary="Create a cached prediction",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_admin_key)],
)
def create_prediction(
    document: Dict[str, Any] = Body(...),
    predictions: PredictionRepository = Depends(get_prediction_repository),
):
    try:
        record = PredictionRecord.model_validate(document)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid prediction document",
            details={"errors": e.errors(include_url=False, include_context=False)},
        )
    require_prediction_id(record.id)
    predictions.create(record)
    return {"success": True, "data": record.to_document()}


@router.post("/prune-active", summary="Drop stale ids from the active set", dependencies=[Depends(verify_admin_key)])
def prune_active(predictions: PredictionRepository = Depends(get_prediction_repository)):
    pruned = predictions.prune_active()
    return {"success": True, "pruned": pruned}


@router.get("/{prediction_id}", summary="Get one cached prediction")
def get_prediction(prediction_id: str, predictions: PredictionRepository = Depends(get_prediction_repository)):
    record = predictions.get(require_prediction_id(prediction_id))
    if record is None:
        raise ResourceNotFoundException("Prediction", prediction_id)
    return {"success": True, "data": record.to_document()}


@router.post("/{prediction_id}/resolve", dependencies=[Depends(verify_admin_key)])
def resolve_prediction(
    prediction_id: str,
    body: ResolveRequest,
    predictions: PredictionRepository = Depends(get_prediction_repository),
):
    record = predictions.mark_resolved(prediction_id, body.outcome)
    return {"success": True, "data": record.to_document()}


@router.post("/{prediction_id}/cancel", dependencies=[Depends(verify_admin_key)])
def cancel_prediction(prediction_id: str, predictions: PredictionRepository = Depends(get_prediction_repository)):
    record = predictions.mark_cancelled(prediction_id)
    return {"success": True, "data": record.to_document()}


# ============================================================================
# Price history
# ============================================================================

@router.get("/{prediction_id}/price-history", summary="Price history series")
def get_price_history(prediction_id: str, ledger: PriceHistoryLedger = Depends(price_history_dependency)):
    return {"success": True, "data": ledger.get(prediction_id).to_document()}


@router.post("/{prediction_id}/price-history", summary="Append a price point")
def append_price_point(
    prediction_id: str,
    body: PricePointRequest,
    ledger: PriceHistoryLedger = Depends(price_history_dependency),
):
    point, total = ledger.append(
        prediction_id,
        body.yes_pool,
        body.no_pool,
        bet_amount=body.bet_amount,
        bet_side=body.bet_side,
        bettor=body.bettor,
    )
    return {"success": True, "data": {"point": point.to_document(), "totalPoints": total}}


# ============================================================================
# Positions
# ============================================================================

def _position_document(position: UserPosition, record: Optional[PredictionRecord]) -> Dict[str, Any]:
    document = position.to_document()
    document["winningAssets"] = [a.value for a in position.winning_assets(record)] if record else []
    return document


@router.get("/{prediction_id}/stakes", summary="Cached positions on a prediction")
def list_stakes(
    prediction_id: str,
    positions: PositionRepository = Depends(get_position_repository),
    predictions: PredictionRepository = Depends(get_prediction_repository),
):
    prediction_id = require_prediction_id(prediction_id)
    record = predictions.get(prediction_id)
    found = positions.list_for_prediction(prediction_id)
    return {"success": True, "count": len(found), "data": [_position_document(p, record) for p in found]}


@router.get("/{prediction_id}/positions/{user}", summary="One user's cached position")
def get_position(
    prediction_id: str,
    user: str,
    positions: PositionRepository = Depends(get_position_repository),
    predictions: PredictionRepository = Depends(get_prediction_repository),
):
    prediction_id = require_prediction_id(prediction_id)
    position = positions.get(require_address(user, "user"), prediction_id)
    if position is None:
        return {"success": True, "data": None}
    return {"success": True, "data": _position_document(position, predictions.get(prediction_id))}
