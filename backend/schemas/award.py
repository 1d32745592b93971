"""Pydantic schemas for award issuance and ownership holdings."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, model_validator

from schemas.common import ChainReference, WalletAddress


class AwardCommitRequest(BaseModel):
    """Commit an award whose chain transfer the caller already executed."""

    batch_id: str
    recipient: WalletAddress
    issuer: WalletAddress
    context_id: str | None = None
    transaction_reference: ChainReference
    object_id: ChainReference
    note: str | None = None


class AwardIssueRequest(BaseModel):
    """Award a token server-side: reserve, transfer on-chain, commit.

    Either ``batch_id`` or ``context_id`` selects the source inventory.
    """

    batch_id: str | None = None
    context_id: str | None = None
    recipient: WalletAddress
    issuer: WalletAddress
    note: str | None = None

    @model_validator(mode="after")
    def require_selector(self) -> "AwardIssueRequest":
        if not self.batch_id and not self.context_id:
            raise ValueError("batch_id or context_id is required")
        return self


class AwardRecordResponse(BaseModel):
    """Schema for AwardRecord API response."""

    id: str
    recipient: str
    issuer: str
    batch_id: str
    context_id: str | None = None
    object_id: str
    transaction_reference: str
    note: str | None = None
    awarded_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OwnershipHoldingResponse(BaseModel):
    """Schema for OwnershipHolding API response."""

    id: str
    object_id: str
    owner: str
    acquired_at: datetime
    last_transfer_at: datetime | None = None
    award_id: str

    model_config = ConfigDict(from_attributes=True)


class AwardOutcomeResponse(BaseModel):
    """Result of an award commit or a server-driven award attempt."""

    state: str
    batch_id: str | None = None
    award: AwardRecordResponse | None = None
    holding: OwnershipHoldingResponse | None = None
    remaining_quantity: int
    depleted: bool
    replayed: bool = False
