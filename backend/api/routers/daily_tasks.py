"""
Daily tasks router.

Task confirmation (called by the wallet client after the transaction
confirmed), claim stats (written by the claim event listener, read by the
app) and admin repair of achievement counters.
"""

from fastapi import APIRouter, Depends, Query, Request

from api.dependencies import get_stats_aggregator, get_task_service
from api.ratelimit import limiter
from api.schemas.tasks import ConfirmTaskRequest, RecordClaimRequest, ResetStatsRequest, TaskTypeRequest
from api.utils.auth import verify_admin_key
from swipesync.config import settings
from swipesync.services.stats import StatsAggregator
from swipesync.services.tasks import TaskService

router = APIRouter(prefix="/daily-tasks", tags=["daily-tasks"])


@router.post("/confirm", summary="Confirm a completed task")
@limiter.limit(settings.rate_limit_confirm)
def confirm_task(
    request: Request,
    body: ConfirmTaskRequest,
    tasks: TaskService = Depends(get_task_service),
):
    """
    Mark a task or achievement as completed for a wallet.

    Idempotent: a repeat confirmation returns alreadyConfirmed=true and
    changes nothing.
    """
    return tasks.confirm_task(body.address, body.task_type, body.tx_hash)


@router.get("/stats", summary="Claim stats and top-10 leaderboard")
def get_stats(stats: StatsAggregator = Depends(get_stats_aggregator)):
    return stats.get_stats()


@router.post("/stats", summary="Record a claim (internal)")
@limiter.limit(settings.rate_limit_stats)
def record_claim(
    request: Request,
    body: RecordClaimRequest,
    stats: StatsAggregator = Depends(get_stats_aggregator),
):
    """Authenticated by the shared `secret` in the body, not by admin key."""
    return stats.record_claim(
        address=body.address,
        amount=body.amount,
        streak=body.streak,
        is_jackpot=body.is_jackpot,
        secret=body.secret,
    )


# ============================================================================
# Admin
# ============================================================================

@router.post("/admin/reset-stats", dependencies=[Depends(verify_admin_key)])
def reset_stats(body: ResetStatsRequest, tasks: TaskService = Depends(get_task_service)):
    """Zero an achievement's completions counter; confirmation keys are kept."""
    return tasks.reset_stats(body.task_type, body.reset_users)


@router.post("/admin/recount", dependencies=[Depends(verify_admin_key)])
def recount_achievement(body: TaskTypeRequest, tasks: TaskService = Depends(get_task_service)):
    """Reset the counter to the confirmation key count and report the drift found."""
    return tasks.recount_achievement(body.task_type)


@router.post("/admin/clean-achievement", dependencies=[Depends(verify_admin_key)])
def clean_achievement(body: TaskTypeRequest, tasks: TaskService = Depends(get_task_service)):
    return tasks.clean_achievement(body.task_type)


@router.get("/admin/list-achievements", dependencies=[Depends(verify_admin_key)])
def list_achievements(
    task_type: str = Query("BETA_TESTER", alias="taskType"),
    tasks: TaskService = Depends(get_task_service),
):
    return tasks.list_achievements(task_type)
