"""
Sync API request schemas.

Bodies use the camelCase field names the admin tooling already sends.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from swipesync.chain.contracts import ContractVersion


class CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SyncRequest(CamelRequest):
    """Explicit ids to sync; empty falls back to every known id."""
    prediction_ids: List[str] = Field(default_factory=list, description="Cached prediction ids")


class UsdcSyncRequest(CamelRequest):
    """
    USDC contract ids. Plain numbers are on-chain ids and map to
    `pred_v2_<n>`; strings are taken as cached ids.
    """
    prediction_ids: List[Union[int, str]] = Field(min_length=1, description="On-chain or cached ids")

    model_config = ConfigDict(
        json_schema_extra={"example": {"predictionIds": [224, "pred_v2_225"]}},
    )


class RouteRegistration(CamelRequest):
    prediction_id: str
    version: ContractVersion
    onchain_id: Optional[int] = Field(None, ge=0)
