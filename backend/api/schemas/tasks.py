"""Daily task and stats request schemas."""

from typing import Optional, Union

from pydantic import Field

from api.schemas.sync import CamelRequest


class ConfirmTaskRequest(CamelRequest):
    """Sent by the wallet client after the task transaction confirmed."""
    address: str = Field(description="Wallet address (0x + 40 hex)")
    task_type: str = Field(description="Task or achievement type, e.g. BETA_TESTER")
    tx_hash: str = Field(description="Transaction hash proving completion (0x + 64 hex)")


class RecordClaimRequest(CamelRequest):
    """Sent by the claim event listener."""
    address: str
    amount: Union[int, float, str]
    streak: Union[int, float] = 0
    is_jackpot: bool = False
    secret: Optional[str] = None


class TaskTypeRequest(CamelRequest):
    task_type: str


class ResetStatsRequest(TaskTypeRequest):
    reset_users: bool = False
