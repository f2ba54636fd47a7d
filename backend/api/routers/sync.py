"""
Sync API router.

Admin-only triggers for pulling contract state into the cache, drift checks
and the contract route registry. Every endpoint requires X-Admin-Key.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_engine, get_route_table
from api.schemas.sync import RouteRegistration, SyncRequest, UsdcSyncRequest
from api.utils.auth import verify_admin_key
from swipesync.chain.routing import RouteTable
from swipesync.config import settings
from swipesync.services.reconciliation import ReconciliationEngine
from swipesync.utils.errors import ValidationError
from swipesync.utils.validation import require_address

router = APIRouter(prefix="/sync", tags=["sync"], dependencies=[Depends(verify_admin_key)])

USDC_ID_PREFIX = "pred_v2_"


def _usdc_prediction_id(value) -> str:
    if isinstance(value, int):
        return f"{USDC_ID_PREFIX}{value}"
    value = value.strip()
    return f"{USDC_ID_PREFIX}{value}" if value.isdigit() else value


def _parse_id_list(ids: str) -> List[int]:
    parsed = []
    for part in ids.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit():
            raise ValidationError(f"Invalid on-chain id: {part}", details={"ids": ids})
        parsed.append(int(part))
    return parsed


@router.post("/usdc", summary="Sync USDC pool state for specific predictions")
def sync_usdc(body: UsdcSyncRequest, engine: ReconciliationEngine = Depends(get_engine)):
    """
    Sync the given predictions from the USDC dual-pool contract.

    Numeric ids are on-chain ids (224 -> pred_v2_224).
    """
    report = engine.sync_many([_usdc_prediction_id(i) for i in body.prediction_ids])
    return {"success": True, **report}


@router.get("/usdc", summary="Sync all known USDC predictions")
def sync_usdc_all(
    ids: Optional[str] = Query(None, description="Comma-separated on-chain ids"),
    engine: ReconciliationEngine = Depends(get_engine),
):
    """
    Emergency full sync. Without `ids`, syncs every registered USDC id plus
    the configured bootstrap ids.
    """
    if ids:
        prediction_ids = [_usdc_prediction_id(i) for i in _parse_id_list(ids)]
    else:
        prediction_ids = [i for i in engine.known_ids() if i.startswith(USDC_ID_PREFIX)]

    report = engine.sync_many(prediction_ids)
    return {
        "success": True,
        "message": f"Synced {report['synced']} USDC predictions",
        **report,
    }


@router.post("", summary="Sync predictions from their routed contracts")
def sync_predictions(body: SyncRequest, engine: ReconciliationEngine = Depends(get_engine)):
    if body.prediction_ids:
        report = engine.sync_many(body.prediction_ids)
    else:
        report = engine.sync_all_known()
    return {"success": True, **report}


@router.post("/predictions/{prediction_id}", summary="Sync one prediction")
def sync_prediction(prediction_id: str, engine: ReconciliationEngine = Depends(get_engine)):
    return engine.sync_one(prediction_id)


@router.get("/compare/{prediction_id}", summary="Compare cached and on-chain state")
def compare_prediction(
    prediction_id: str,
    user: Optional[str] = Query(None, description="Also compare this user's position"),
    engine: ReconciliationEngine = Depends(get_engine),
):
    if user:
        user = require_address(user, "user")
    return engine.compare(prediction_id, user)


@router.post("/drift", summary="Run the drift check now")
def run_drift_check(engine: ReconciliationEngine = Depends(get_engine)):
    return {"success": True, **engine.sync_drifted()}


@router.get("/audit/{prediction_id}", summary="Audit record pools against cached positions")
def audit_pools(prediction_id: str, engine: ReconciliationEngine = Depends(get_engine)):
    return {"success": True, **engine.audit_pools(prediction_id)}


@router.post("/routes", summary="Register an explicit contract route")
def register_route(body: RouteRegistration, routes: RouteTable = Depends(get_route_table)):
    route = routes.register(body.prediction_id, body.version, body.onchain_id)
    return {
        "success": True,
        "predictionId": route.prediction_id,
        "version": route.version.value,
        "address": route.address,
        "onchainId": route.onchain_id,
    }


@router.get("/routes/{prediction_id}", summary="Resolve the contract route of a prediction")
def resolve_route(prediction_id: str, routes: RouteTable = Depends(get_route_table)):
    route = routes.resolve(prediction_id)
    return {
        "predictionId": route.prediction_id,
        "version": route.version.value,
        "address": route.address,
        "onchainId": route.onchain_id,
        "explicit": prediction_id in routes.known_ids(route.version),
        "rules": [f"{prefix}={version.value}" for prefix, version in routes.rules],
        "seedIds": settings.usdc_seed_prediction_ids,
    }
