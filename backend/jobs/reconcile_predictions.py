"""
Reconcile Predictions Job

Compares cached predictions with their contracts and re-syncs them. By
default every known id (registered routes plus the configured USDC
bootstrap ids) is checked and only drifted ids are synced.

Usage:
    python jobs/reconcile_predictions.py [--ids 17,pred_v2_225] [--check-only] [--force]
"""

import os
import sys
import argparse
import json

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from swipesync.log_config import logger
from swipesync.db.session import require_healthy_store
from swipesync.services.reconciliation import ReconciliationEngine
from swipesync.utils.errors import SwipeSyncError
from api.scheduler import build_engine


def reconcile(engine: ReconciliationEngine, ids=None, check_only=False, force=False) -> dict:
    """
    Run one reconciliation pass.

    Returns:
        Report dict with an `errors` count used for the exit code.
    """
    ids = ids or engine.known_ids()
    logger.info(f"Reconciling {len(ids)} prediction(s) (check_only={check_only}, force={force})")

    if check_only:
        comparisons = {}
        for prediction_id in ids:
            try:
                comparisons[prediction_id] = engine.compare(prediction_id)
            except SwipeSyncError as e:
                logger.error(f"Compare {prediction_id} failed: {e.message}")
                comparisons[prediction_id] = {"predictionId": prediction_id, "error": e.message}
        drifted = [i for i, c in comparisons.items() if c.get("needsSync")]
        errors = sum(1 for c in comparisons.values() if "error" in c)
        for prediction_id in drifted:
            logger.warning(f"Drift detected on {prediction_id}")
        return {"checked": len(ids), "drifted": drifted, "errors": errors}

    if force:
        report = engine.sync_many(ids)
        return {**report, "errors": report["failed"]}

    report = engine.sync_drifted(ids)
    return {**report, "errors": len(report["errors"]) + report["sync"]["failed"]}


def main():
    parser = argparse.ArgumentParser(description='Reconcile cached predictions with on-chain state')
    parser.add_argument('--ids', type=str, default='',
                        help='Comma-separated prediction ids (default: all known ids)')
    parser.add_argument('--check-only', action='store_true',
                        help='Report drift without writing anything')
    parser.add_argument('--force', action='store_true',
                        help='Sync every id, drifted or not')

    args = parser.parse_args()
    ids = [i.strip() for i in args.ids.split(',') if i.strip()]

    try:
        require_healthy_store()
        report = reconcile(build_engine(), ids, check_only=args.check_only, force=args.force)
    except SwipeSyncError as e:
        logger.error(f"Reconciliation aborted: {e.message}")
        return 1

    print(json.dumps(report, indent=2, default=str))
    return 0 if report['errors'] == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
