"""Marketplace listing API endpoints.

All listing mutations go through a single action-dispatched endpoint so
each action maps to exactly one state transition. An action attempted
from the wrong state returns 409 with ``detail.code == "stale_state"``
(or ``"listing_unavailable"`` for a lost reservation race) and the
listing's current status, so the client can refresh and re-offer.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from api.dependencies import get_chain_executor
from api.helpers import raise_http
from database import get_db
from integrations.chain_protocol import ChainExecutor
from schemas import ListingAction, ListingActionResponse, ListingResponse
from schemas.common import WalletAddress
from schemas.marketplace import (
    CancelAction,
    CompleteAction,
    CreateListingAction,
    PaymentSubmittedAction,
    PurchaseAction,
    ReleaseAction,
)
from services.exceptions import BadgeServiceError
from services.marketplace_service import MarketplaceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/marketplace", tags=["marketplace"])


def _dispatch(db: Session, body: ListingAction, chain: ChainExecutor):
    """Run the transition for one action and return the listing."""
    if isinstance(body, CreateListingAction):
        return MarketplaceService.create_listing(db, body.holding_id, body.seller, body.price)
    if isinstance(body, PurchaseAction):
        return MarketplaceService.reserve(db, body.listing_id, body.buyer)
    if isinstance(body, PaymentSubmittedAction):
        return MarketplaceService.submit_payment(
            db, body.listing_id, body.buyer, body.payment_transaction_reference
        )
    if isinstance(body, CompleteAction):
        return MarketplaceService.complete(
            db, body.listing_id, body.seller, body.transfer_transaction_reference, chain=chain
        )
    if isinstance(body, ReleaseAction):
        return MarketplaceService.release(db, body.listing_id, body.wallet)
    if isinstance(body, CancelAction):
        return MarketplaceService.cancel(db, body.listing_id, body.seller)
    raise ValueError(f"Unhandled listing action: {body.action}")


@router.get("/listings", response_model=list[ListingResponse])
def list_listings(
    seller: WalletAddress | None = None,
    buyer: WalletAddress | None = None,
    participant: WalletAddress | None = None,
    status: str | None = None,
    limit: int = Query(50),
    db: Session = Depends(get_db),
):
    """List listings, newest first.

    With no seller/buyer/participant filter and no status, only active
    listings are returned. ``limit`` is clamped to 1..100.
    """
    try:
        return MarketplaceService.list_listings(
            db,
            seller=seller,
            buyer=buyer,
            participant=participant,
            status=status,
            limit=limit,
        )
    except BadgeServiceError as e:
        raise_http(db, e)


@router.post("/listings", response_model=ListingActionResponse)
def listing_action(
    body: Annotated[ListingAction, Body(discriminator="action")],
    db: Session = Depends(get_db),
    chain: ChainExecutor = Depends(get_chain_executor),
):
    """Apply one listing action: create, purchase, payment-submitted,
    complete, release or cancel."""
    try:
        listing = _dispatch(db, body, chain)
        db.commit()
    except BadgeServiceError as e:
        raise_http(db, e)
    db.refresh(listing)
    logger.debug("Listing action %s applied to %s", body.action, listing.id)
    return {"success": True, "listing": listing}
