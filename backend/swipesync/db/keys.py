"""
Key naming for the shared key-value store.

These strings are shared with admin scripts and debug tooling, so they must
stay verbatim. Every namespace has a distinct first segment (or a distinct
segment count) so patterns never overlap.
"""

PREDICTIONS = "predictions"
PREDICTIONS_ACTIVE = "predictions:active"
PREDICTIONS_RESOLVED = "predictions:resolved"
PREDICTION_PATTERN = "prediction:*"

CONTRACT_ROUTES = "contract-routes"

DAILY_TASK_STATS = "daily-tasks:stats"
DAILY_TASK_LEADERBOARD = "daily-tasks:leaderboard"
DAILY_TASK_CLAIM_USERS = "daily-tasks:users"
DAILY_TASK_UNIQUE_USERS = "daily-tasks:unique-users"


def prediction(prediction_id: str) -> str:
    return f"prediction:{prediction_id}"


def predictions_by_category(category: str) -> str:
    return f"predictions:category:{category}"


def user_stake(user: str, prediction_id: str) -> str:
    return f"user_stakes:{user.lower()}:{prediction_id}"


def user_stakes_for_prediction(prediction_id: str) -> str:
    return f"user_stakes:*:{prediction_id}"


def price_history(prediction_id: str) -> str:
    return f"price-history:{prediction_id}"


def sync_cursor(prediction_id: str) -> str:
    return f"sync-cursor:{prediction_id}"


def registered_ids(version: str) -> str:
    return f"contract-routes:{version}:ids"


def achievement(address: str, task_type: str) -> str:
    return f"achievements:{address.lower()}:{task_type}"


def achievement_timestamp(address: str, task_type: str) -> str:
    return f"{achievement(address, task_type)}:timestamp"


def achievement_pattern(task_type: str) -> str:
    return f"achievements:*:{task_type}"


def achievement_timestamp_pattern(task_type: str) -> str:
    return f"achievements:*:{task_type}:timestamp"


def achievement_users(task_type: str) -> str:
    return f"achievements:{task_type}:users"


def daily_task(address: str, task_type: str, day: str) -> str:
    return f"daily-tasks:{address.lower()}:{task_type}:{day}"


def task_completions_field(task_type: str) -> str:
    return f"{task_type}:completions"
