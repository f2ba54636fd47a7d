"""Background drift checker - compares known predictions against their contracts on an interval"""
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from api.dependencies import get_contract_client, get_route_table, get_store, record_locks
from swipesync.config import settings
from swipesync.services.reconciliation import ReconciliationEngine
from swipesync.utils.errors import SwipeSyncError

scheduler = BackgroundScheduler(timezone="UTC")


def build_engine() -> ReconciliationEngine:
    store = get_store()
    return ReconciliationEngine(store, get_contract_client(), get_route_table(store), locks=record_locks)


def run_drift_check() -> dict:
    """
    Compare every known prediction with its contract and sync the drifted ones.

    Errors are logged and never propagate into the scheduler thread.
    """
    try:
        report = build_engine().sync_drifted()
    except SwipeSyncError as e:
        logger.error(f"Drift check aborted: {e.message}")
        return {"error": e.message}

    if report["drifted"]:
        logger.warning(f"Drift check resynced {len(report['drifted'])} prediction(s): {report['drifted']}")
    return report


def start_scheduler():
    """Register the drift check job and start the scheduler (no-op when disabled)."""
    if not settings.scheduler_enabled:
        logger.info("Drift checker disabled (SCHEDULER_ENABLED=false)")
        return

    scheduler.add_job(
        run_drift_check,
        trigger=IntervalTrigger(minutes=settings.drift_check_interval_minutes),
        id="drift_check",
        name="Prediction Drift Check",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(f"Drift checker started (every {settings.drift_check_interval_minutes} minutes)")


def stop_scheduler():
    """Stop the background scheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
