"""
Recount Achievements Job

Resets each achievement's completions counter to the number of confirmation
keys and reports counter / users-set drift.

Usage:
    python jobs/recount_achievements.py [--types BETA_TESTER,STREAK_7]
"""

import os
import sys
import argparse

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from swipesync.log_config import logger
from swipesync.config import settings
from swipesync.db.session import get_client, require_healthy_store
from swipesync.db.store import KeyValueStore
from swipesync.services.tasks import TaskService
from swipesync.utils.errors import SwipeSyncError


def recount_all(tasks: TaskService, task_types) -> dict:
    stats = {'checked': 0, 'repaired': 0, 'errors': 0}
    for task_type in task_types:
        stats['checked'] += 1
        try:
            report = tasks.recount_achievement(task_type)
        except SwipeSyncError as e:
            logger.error(f"Recount of {task_type} failed: {e.message}")
            stats['errors'] += 1
            continue

        before = report['before']
        if report['consistent']:
            logger.info(f"{task_type}: consistent ({before['confirmationKeys']} holders)")
        else:
            stats['repaired'] += 1
            logger.warning(
                f"{task_type}: keys={before['confirmationKeys']} set={before['usersInSet']} "
                f"counter={before['completions']} mismatches={report['mismatches']}"
            )
    return stats


def main():
    parser = argparse.ArgumentParser(description='Recount achievement completion counters')
    parser.add_argument('--types', type=str, default='',
                        help='Comma-separated achievement types (default: all configured)')

    args = parser.parse_args()
    task_types = [t.strip() for t in args.types.split(',') if t.strip()] or settings.achievement_types

    try:
        require_healthy_store()
    except SwipeSyncError as e:
        logger.error(f"Recount aborted: {e.message}")
        return 1

    store = KeyValueStore(get_client(), settings.scan_batch_size, settings.scan_max_keys)
    stats = recount_all(TaskService(store), task_types)
    logger.info(f"Recount complete: {stats}")
    return 0 if stats['errors'] == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
