"""Pydantic schemas for the marketplace listing workflow."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict

from schemas.award import OwnershipHoldingResponse
from schemas.common import ChainReference, WalletAddress


class CreateListingAction(BaseModel):
    action: Literal["create"]
    holding_id: str
    seller: WalletAddress
    price: Decimal


class PurchaseAction(BaseModel):
    action: Literal["purchase"]
    listing_id: str
    buyer: WalletAddress


class PaymentSubmittedAction(BaseModel):
    action: Literal["payment-submitted"]
    listing_id: str
    buyer: WalletAddress
    payment_transaction_reference: ChainReference


class CompleteAction(BaseModel):
    action: Literal["complete"]
    listing_id: str
    seller: WalletAddress
    transfer_transaction_reference: ChainReference


class ReleaseAction(BaseModel):
    action: Literal["release"]
    listing_id: str
    wallet: WalletAddress


class CancelAction(BaseModel):
    action: Literal["cancel"]
    listing_id: str
    seller: WalletAddress


# Discriminated on "action"
ListingAction = Union[
    CreateListingAction,
    PurchaseAction,
    PaymentSubmittedAction,
    CompleteAction,
    ReleaseAction,
    CancelAction,
]


class ListingResponse(BaseModel):
    """Schema for Listing API response."""

    id: str
    holding_id: str
    seller: str
    price: Decimal
    status: str
    buyer: str | None = None
    payment_transaction_reference: str | None = None
    transfer_transaction_reference: str | None = None
    reserved_at: datetime | None = None
    payment_submitted_at: datetime | None = None
    transfer_completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    holding: OwnershipHoldingResponse | None = None

    model_config = ConfigDict(from_attributes=True)


class ListingActionResponse(BaseModel):
    success: bool = True
    listing: ListingResponse
