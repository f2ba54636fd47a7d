"""
Cached document models.

Records are stored as camelCase JSON documents shared with the web frontend
and admin tooling. Models keep unknown keys (extra="allow") and dump with
exclude_unset so a read-modify-write only changes the fields it touched.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, BeforeValidator, model_validator
from pydantic.alias_generators import to_camel

from swipesync.utils.datetime import unix_seconds


def _coerce_amount(value: Any) -> Any:
    # Older writers stored amounts as JS numbers (floats) or numeric strings
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        return int(round(value))
    if isinstance(value, str) and value.strip():
        return int(Decimal(value.strip()))
    return value


Amount = Annotated[int, BeforeValidator(_coerce_amount)]


class Asset(str, Enum):
    """Stake assets. Values double as the sub-record keys in a position document."""

    ETH = "ETH"
    SWIPE = "SWIPE"
    USDC = "USDC"


ASSET_DECIMALS: Dict[Asset, int] = {
    Asset.ETH: 18,
    Asset.SWIPE: 18,
    Asset.USDC: 6,
}


def to_units(amount: int, asset: Asset) -> Decimal:
    """Convert a smallest-unit amount to whole units of `asset`."""
    return Decimal(int(amount)) / (Decimal(10) ** ASSET_DECIMALS[asset])


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


# ============================================================================
# Predictions
# ============================================================================

class PredictionRecord(CamelModel):
    """
    One cached prediction market.

    Native flags (resolved/cancelled/outcome) and the usdc* flags are two
    independent resolution states. Reconciliation writes only the group that
    belongs to the contract it read from.
    """

    id: str
    question: str = ""
    description: str = ""
    category: str = ""
    image_url: str = ""
    deadline: Amount = 0
    creator: Optional[str] = None
    created_at: Optional[Union[int, float]] = None

    yes_total_amount: Amount = 0
    no_total_amount: Amount = 0
    swipe_yes_total_amount: Optional[Amount] = None
    swipe_no_total_amount: Optional[Amount] = None
    participants: List[str] = Field(default_factory=list)

    resolved: bool = False
    cancelled: bool = False
    outcome: Optional[bool] = None

    usdc_pool_enabled: bool = False
    usdc_yes_total_amount: Amount = 0
    usdc_no_total_amount: Amount = 0
    usdc_participant_count: int = 0
    usdc_participants: List[str] = Field(default_factory=list)
    usdc_resolved: bool = False
    usdc_cancelled: bool = False
    usdc_outcome: Optional[bool] = None

    og_image_url: Optional[str] = None

    def is_active(self, now: Optional[int] = None) -> bool:
        """The authoritative "active" predicate; set membership is only a hint."""
        now = unix_seconds() if now is None else now
        return not self.resolved and not self.cancelled and self.deadline > now

    def pool_totals(self, asset: Asset) -> tuple:
        if asset == Asset.ETH:
            return self.yes_total_amount, self.no_total_amount
        if asset == Asset.SWIPE:
            return self.swipe_yes_total_amount or 0, self.swipe_no_total_amount or 0
        return self.usdc_yes_total_amount, self.usdc_no_total_amount

    def resolution_for(self, asset: Asset) -> tuple:
        """(resolved, cancelled, outcome) governing payouts of `asset`."""
        if asset == Asset.USDC:
            return self.usdc_resolved, self.usdc_cancelled, self.usdc_outcome
        return self.resolved, self.cancelled, self.outcome


# ============================================================================
# Positions
# ============================================================================

class AssetPosition(CamelModel):
    """One asset's stake inside a user position."""

    yes_amount: Amount = 0
    no_amount: Amount = 0
    claimed: bool = False
    entry_price: Optional[Amount] = None
    yes_entry_price: Optional[Amount] = None
    no_entry_price: Optional[Amount] = None
    exited_early: bool = False
    token_type: Optional[str] = None

    def is_empty(self) -> bool:
        return self.yes_amount == 0 and self.no_amount == 0

    @property
    def total(self) -> int:
        return self.yes_amount + self.no_amount


def is_winner(position: AssetPosition, resolved: bool, cancelled: bool, outcome: Optional[bool]) -> bool:
    """Derived, never stored."""
    if not resolved or cancelled:
        return False
    return position.yes_amount > 0 if outcome else position.no_amount > 0


class UserPosition(CamelModel):
    """
    A user's stakes on one prediction, one optional sub-record per asset.
    Documents written by older code as a flat {yesAmount, noAmount, claimed}
    are read as an ETH sub-record.
    """

    user: str
    prediction_id: str
    staked_at: Optional[int] = None
    contract_version: Optional[str] = None

    eth: Optional[AssetPosition] = Field(default=None, alias="ETH")
    swipe: Optional[AssetPosition] = Field(default=None, alias="SWIPE")
    usdc: Optional[AssetPosition] = Field(default=None, alias="USDC")

    @model_validator(mode="before")
    @classmethod
    def lift_flat_stake(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "user" not in data and "userId" in data:
            data["user"] = data.pop("userId")
        if "ETH" not in data and ("yesAmount" in data or "noAmount" in data):
            data["ETH"] = {
                "yesAmount": data.pop("yesAmount", 0),
                "noAmount": data.pop("noAmount", 0),
                "claimed": data.pop("claimed", False),
                "tokenType": "ETH",
            }
        return data

    def asset(self, asset: Asset) -> Optional[AssetPosition]:
        return getattr(self, asset.value.lower())

    def set_asset(self, asset: Asset, position: AssetPosition) -> None:
        setattr(self, asset.value.lower(), position)

    def assets(self) -> Dict[Asset, AssetPosition]:
        return {a: self.asset(a) for a in Asset if self.asset(a) is not None}

    def winning_assets(self, record: PredictionRecord) -> List[Asset]:
        """Assets whose stake won under the resolution governing that asset on `record`."""
        return [a for a, p in self.assets().items() if is_winner(p, *record.resolution_for(a))]


# ============================================================================
# Price history
# ============================================================================

Number = Union[int, float]


class PriceHistoryPoint(CamelModel):
    timestamp: int
    yes_price: int
    no_price: int
    yes_pool: Number
    no_pool: Number
    total_pool: Number
    bet_amount: Optional[Number] = None
    bet_side: Optional[str] = None
    bettor: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class PriceHistory(CamelModel):
    prediction_id: str
    history: List[PriceHistoryPoint] = Field(default_factory=list)
    last_updated: int = 0

    def to_document(self) -> Dict[str, Any]:
        return {
            "predictionId": self.prediction_id,
            "history": [point.to_document() for point in self.history],
            "lastUpdated": self.last_updated,
        }
