"""Shape validation for wallet addresses, transaction hashes and ids."""

import re

from swipesync.utils.errors import ValidationError

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
TX_HASH_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")
TASK_TYPE_RE = re.compile(r"^[A-Z0-9_]{1,64}$")


def is_address(value) -> bool:
    return isinstance(value, str) and bool(ADDRESS_RE.match(value))


def is_tx_hash(value) -> bool:
    return isinstance(value, str) and bool(TX_HASH_RE.match(value))


def require_address(value, field: str = "address") -> str:
    """Validate a 20-byte hex address and return it lower-cased."""
    if not is_address(value):
        raise ValidationError("Invalid wallet address", details={"field": field, "value": value})
    return value.lower()


def require_tx_hash(value, field: str = "txHash") -> str:
    """Validate a 32-byte hex transaction hash."""
    if not is_tx_hash(value):
        raise ValidationError("Invalid transaction hash", details={"field": field, "value": value})
    return value


def require_task_type(value) -> str:
    # Task types end up inside key names, so no ':' or '*' may slip through
    if not isinstance(value, str) or not TASK_TYPE_RE.match(value):
        raise ValidationError("Invalid task type", details={"field": "taskType", "value": value})
    return value


def require_prediction_id(value) -> str:
    if not isinstance(value, str) or not value or any(c in value for c in ":*?[] "):
        raise ValidationError("Invalid prediction id", details={"field": "predictionId", "value": value})
    return value
