"""Prediction, price history and position request schemas."""

from typing import Optional, Union

from pydantic import Field

from api.schemas.sync import CamelRequest

Number = Union[int, float]


class PricePointRequest(CamelRequest):
    yes_pool: Number = Field(ge=0)
    no_pool: Number = Field(ge=0)
    bet_amount: Optional[Number] = None
    bet_side: Optional[str] = None
    bettor: Optional[str] = None


class ResolveRequest(CamelRequest):
    outcome: bool
