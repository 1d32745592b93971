"""Pydantic schemas for depletion/replenishment decisions."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from schemas.common import WalletAddress
from schemas.inventory import InventoryBatchResponse


class DepletionTriggerResponse(BaseModel):
    """Schema for DepletionTrigger API response."""

    id: str
    context_id: str
    batch_id: str
    issuer: str
    status: str
    replacement_batch_id: str | None = None
    created_at: datetime
    resolved_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class DepletionOptionsResponse(BaseModel):
    """The resolutions currently offered for an open trigger."""

    trigger: DepletionTriggerResponse
    can_reassign: bool
    can_finalize: bool
    candidate_batches: list[InventoryBatchResponse]


class ReassignRequest(BaseModel):
    batch_id: str
    issuer: WalletAddress


class FinalizeRequest(BaseModel):
    issuer: WalletAddress
    confirm: bool = False
