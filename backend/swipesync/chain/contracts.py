"""
Contract versions and minimal read-only ABIs.

Only the view functions used by reconciliation are declared.
"""

from enum import Enum

from swipesync.db.models import Asset


class ContractVersion(str, Enum):
    LEGACY = "legacy"  # ETH/SWIPE dual-token pool
    USDC = "usdc"  # USDC dual-pool


# Assets whose pools live on each contract
VERSION_ASSETS = {
    ContractVersion.LEGACY: (Asset.ETH, Asset.SWIPE),
    ContractVersion.USDC: (Asset.USDC,),
}


def _uint(name: str) -> dict:
    return {"name": name, "type": "uint256"}


def _view(name: str, inputs: list, outputs: list) -> dict:
    return {
        "inputs": inputs,
        "name": name,
        "outputs": outputs,
        "stateMutability": "view",
        "type": "function",
    }


_PREDICTION_ID = _uint("predictionId")
_USER = {"name": "user", "type": "address"}
_PARTICIPANTS = _view("getParticipants", [_PREDICTION_ID], [{"name": "", "type": "address[]"}])

_STAKE_OUTPUTS = [
    _uint("yesAmount"),
    _uint("noAmount"),
    {"name": "claimed", "type": "bool"},
]

USDC_DUALPOOL_ABI = [
    _view(
        "getPrediction",
        [_PREDICTION_ID],
        [
            {"name": "registered", "type": "bool"},
            {"name": "creator", "type": "address"},
            _uint("deadline"),
            _uint("yesPool"),
            _uint("noPool"),
            {"name": "resolved", "type": "bool"},
            {"name": "cancelled", "type": "bool"},
            {"name": "outcome", "type": "bool"},
            _uint("participantCount"),
        ],
    ),
    _view(
        "getPosition",
        [_PREDICTION_ID, _USER],
        [
            _uint("yesAmount"),
            _uint("noAmount"),
            _uint("yesEntryPrice"),
            _uint("noEntryPrice"),
            {"name": "claimed", "type": "bool"},
        ],
    ),
    _PARTICIPANTS,
]

LEGACY_V2_ABI = [
    _view(
        "predictions",
        [_PREDICTION_ID],
        [
            {"name": "question", "type": "string"},
            {"name": "description", "type": "string"},
            {"name": "category", "type": "string"},
            {"name": "imageUrl", "type": "string"},
            _uint("yesTotalAmount"),
            _uint("noTotalAmount"),
            _uint("swipeYesTotalAmount"),
            _uint("swipeNoTotalAmount"),
            _uint("deadline"),
            _uint("resolutionDeadline"),
            {"name": "resolved", "type": "bool"},
            {"name": "outcome", "type": "bool"},
            {"name": "cancelled", "type": "bool"},
            _uint("createdAt"),
            {"name": "creator", "type": "address"},
            {"name": "verified", "type": "bool"},
            {"name": "approved", "type": "bool"},
            {"name": "needsApproval", "type": "bool"},
            {"name": "creationToken", "type": "address"},
            _uint("creationTokenAmount"),
        ],
    ),
    _view("userStakes", [_PREDICTION_ID, _USER], _STAKE_OUTPUTS),
    _view("userSwipeStakes", [_PREDICTION_ID, _USER], _STAKE_OUTPUTS),
    _PARTICIPANTS,
]

ABIS = {
    ContractVersion.LEGACY: LEGACY_V2_ABI,
    ContractVersion.USDC: USDC_DUALPOOL_ABI,
}
