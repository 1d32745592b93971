"""Pydantic schemas for inventory batches and award contexts."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from schemas.common import ChainReference, WalletAddress


class BatchRegister(BaseModel):
    """Schema for registering a purchased or custom-minted batch."""

    issuer: WalletAddress
    transaction_reference: ChainReference
    quantity: int = Field(ge=1)
    minted_object_ids: list[ChainReference]
    template_ref: str | None = None
    custom_name: str | None = None
    custom_description: str | None = None
    custom_image_url: str | None = None
    mint_cost: Decimal | None = Field(default=None, ge=0)


class TokenRecordResponse(BaseModel):
    """Schema for TokenRecord API response."""

    id: str
    object_id: str
    position: int
    status: str
    minted_transaction_reference: str | None = None
    award_transaction_reference: str | None = None
    awarded_at: datetime | None = None
    recipient: str | None = None

    model_config = ConfigDict(from_attributes=True)


class InventoryBatchResponse(BaseModel):
    """Schema for InventoryBatch API response."""

    id: str
    issuer: str
    template_ref: str | None = None
    is_custom_minted: bool
    custom_name: str | None = None
    custom_description: str | None = None
    custom_image_url: str | None = None
    quantity: int
    awarded_count: int
    available_count: int
    context_id: str | None = None
    chain_status: str
    transaction_reference: str | None = None
    mint_cost: Decimal | None = None
    created_at: datetime
    tokens: list[TokenRecordResponse] = []

    model_config = ConfigDict(from_attributes=True)


class AwardContextCreate(BaseModel):
    """Schema for creating a challenge or event."""

    issuer: WalletAddress
    name: str = Field(min_length=1)
    kind: Literal["challenge", "event"] = "challenge"


class AwardContextResponse(BaseModel):
    """Schema for AwardContext API response."""

    id: str
    issuer: str
    name: str
    kind: str
    status: str
    closed_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BatchAssignRequest(BaseModel):
    """Bind an unassigned batch to a context."""

    batch_id: str
    issuer: WalletAddress
