"""Service for the peer-to-peer resale listing workflow.

Listing states::

    active -> payment_pending -> awaiting_transfer -> completed
    payment_pending -> active            (release / stale sweep)
    any open state -> cancelled          (seller)

Every transition is a conditional UPDATE on the listing's current status,
so two callers racing on one listing cannot both win. Settlement is not
escrowed: the buyer pays the seller directly and the recorded payment
reference is not checked on-chain. Only the seller's token transfer is
verified before a listing completes.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from config import settings
from integrations.chain_protocol import ChainExecutor
from models import Listing, ListingStatus, OwnershipHolding
from models.utils import utcnow
from services.chain_verification import verify_transaction
from services.exceptions import (
    InvalidRequestError,
    ListingUnavailableError,
    NotFoundError,
    PermissionDeniedError,
    StaleStateError,
    StateConflictError,
)

logger = logging.getLogger(__name__)

MAX_LISTING_LIMIT = 100

ALL_STATUSES = ListingStatus.OPEN + ListingStatus.TERMINAL


class MarketplaceService:
    """Create listings and drive them through their state machine."""

    @staticmethod
    def get_listing(db: Session, listing_id: str) -> Listing:
        listing = (
            db.query(Listing)
            .options(joinedload(Listing.holding))
            .filter(Listing.id == listing_id)
            .first()
        )
        if not listing:
            raise NotFoundError(f"Listing not found: {listing_id}")
        return listing

    @staticmethod
    def _transition(
        db: Session,
        listing: Listing,
        expected: tuple[str, ...],
        values: dict,
        *conditions,
        error_cls: type[StaleStateError] = StaleStateError,
    ) -> Listing:
        """Move a listing out of one of ``expected`` states, or raise.

        The UPDATE only matches while the row is still in an expected
        state (plus any extra ``conditions``), so a concurrent writer that
        got there first makes this call fail instead of overwriting it.
        """
        db.flush()
        result = db.execute(
            update(Listing)
            .where(Listing.id == listing.id, Listing.status.in_(expected), *conditions)
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        db.refresh(listing)
        if result.rowcount != 1:
            logger.info(
                "Listing %s transition rejected: expected %s, found %s",
                listing.id, "/".join(expected), listing.status,
            )
            raise error_cls(
                f"Listing {listing.id} is {listing.status}, expected {' or '.join(expected)}",
                expected=expected,
                actual=listing.status,
            )
        return listing

    @staticmethod
    def _require_status(listing: Listing, *expected: str) -> None:
        if listing.status not in expected:
            raise StaleStateError(
                f"Listing {listing.id} is {listing.status}, expected {' or '.join(expected)}",
                expected=expected,
                actual=listing.status,
            )

    @staticmethod
    def _normalize_price(price) -> Decimal:
        try:
            value = Decimal(str(price)).quantize(
                Decimal(1).scaleb(-settings.LISTING_PRICE_DECIMALS)
            )
        except InvalidOperation:
            raise InvalidRequestError(f"Invalid price: {price}", code="invalid_price")
        if value <= 0:
            raise InvalidRequestError("Price must be greater than zero", code="invalid_price")
        return value

    # --- Transitions ---

    @staticmethod
    def create_listing(db: Session, holding_id: str, seller: str, price) -> Listing:
        """Offer a holding for sale. The seller must be its current owner."""
        holding = db.query(OwnershipHolding).filter_by(id=holding_id).first()
        if not holding:
            raise NotFoundError(f"Holding not found: {holding_id}")
        if holding.owner != seller:
            raise PermissionDeniedError("Only the current owner can list a holding")
        price = MarketplaceService._normalize_price(price)

        open_listing = (
            db.query(Listing)
            .filter(Listing.holding_id == holding_id, Listing.status.in_(ListingStatus.OPEN))
            .first()
        )
        if open_listing:
            raise StateConflictError(
                f"Holding {holding_id} already has an open listing",
                code="already_listed",
                listing_id=open_listing.id,
            )

        listing = Listing(
            holding_id=holding_id,
            seller=seller,
            price=price,
            status=ListingStatus.ACTIVE,
        )
        db.add(listing)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise StateConflictError(
                f"Holding {holding_id} already has an open listing", code="already_listed"
            )
        logger.info("Listing %s created: holding %s at %s by %s", listing.id, holding_id, price, seller)
        return listing

    @staticmethod
    def reserve(db: Session, listing_id: str, buyer: str) -> Listing:
        """Reserve an active listing for ``buyer``. First writer wins."""
        listing = MarketplaceService.get_listing(db, listing_id)
        if buyer == listing.seller:
            raise InvalidRequestError("Sellers cannot buy their own listing", code="self_purchase")

        MarketplaceService._transition(
            db,
            listing,
            (ListingStatus.ACTIVE,),
            {"status": ListingStatus.PAYMENT_PENDING, "buyer": buyer, "reserved_at": utcnow()},
            Listing.buyer.is_(None),
            error_cls=ListingUnavailableError,
        )
        logger.info("Listing %s reserved by %s", listing_id, buyer)
        return listing

    @staticmethod
    def submit_payment(
        db: Session, listing_id: str, buyer: str, payment_transaction_reference: str
    ) -> Listing:
        """Record the buyer's payment reference. The payment is not verified here."""
        listing = MarketplaceService.get_listing(db, listing_id)
        MarketplaceService._require_status(listing, ListingStatus.PAYMENT_PENDING)
        if listing.buyer != buyer:
            raise PermissionDeniedError("Only the reserved buyer can submit payment")

        MarketplaceService._transition(
            db,
            listing,
            (ListingStatus.PAYMENT_PENDING,),
            {
                "status": ListingStatus.AWAITING_TRANSFER,
                "payment_transaction_reference": payment_transaction_reference,
                "payment_submitted_at": utcnow(),
            },
            Listing.buyer == buyer,
        )
        logger.info(
            "Listing %s payment submitted by %s (tx %s)",
            listing_id, buyer, payment_transaction_reference,
        )
        return listing

    @staticmethod
    def complete(
        db: Session,
        listing_id: str,
        seller: str,
        transfer_transaction_reference: str,
        chain: ChainExecutor | None = None,
    ) -> Listing:
        """Complete a sale once the seller's token transfer is confirmed.

        The listing and the holding's owner change in one transaction.

        Raises:
            StaleStateError: The listing is not awaiting transfer.
            ChainFailedError: The transfer could not be confirmed.
            InvalidRequestError: The transfer did not move the token to
                the buyer.
        """
        listing = MarketplaceService.get_listing(db, listing_id)
        if listing.seller != seller:
            raise PermissionDeniedError("Only the seller can complete a listing")
        MarketplaceService._require_status(listing, ListingStatus.AWAITING_TRANSFER)

        holding = listing.holding
        buyer = listing.buyer
        verify_transaction(chain, transfer_transaction_reference, holding.object_id, buyer)

        now = utcnow()
        MarketplaceService._transition(
            db,
            listing,
            (ListingStatus.AWAITING_TRANSFER,),
            {
                "status": ListingStatus.COMPLETED,
                "transfer_transaction_reference": transfer_transaction_reference,
                "transfer_completed_at": now,
            },
            Listing.buyer == buyer,
        )
        moved = db.execute(
            update(OwnershipHolding)
            .where(OwnershipHolding.id == holding.id, OwnershipHolding.owner == seller)
            .values(owner=buyer, acquired_at=now, last_transfer_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if moved.rowcount != 1:
            db.rollback()
            raise StateConflictError(
                f"Holding {holding.id} is no longer owned by the seller",
                code="holding_owner_changed",
            )
        db.refresh(holding)
        logger.info(
            "Listing %s completed: %s -> %s (tx %s)",
            listing_id, seller, buyer, transfer_transaction_reference,
        )
        return listing

    @staticmethod
    def release(db: Session, listing_id: str, wallet: str) -> Listing:
        """Return a reserved listing to ``active`` and clear the buyer."""
        listing = MarketplaceService.get_listing(db, listing_id)
        MarketplaceService._require_status(listing, ListingStatus.PAYMENT_PENDING)
        if wallet not in (listing.buyer, listing.seller):
            raise PermissionDeniedError("Only the reserved buyer or the seller can release")

        MarketplaceService._transition(
            db,
            listing,
            (ListingStatus.PAYMENT_PENDING,),
            {
                "status": ListingStatus.ACTIVE,
                "buyer": None,
                "reserved_at": None,
                "payment_transaction_reference": None,
                "payment_submitted_at": None,
            },
        )
        logger.info("Listing %s released by %s", listing_id, wallet)
        return listing

    @staticmethod
    def cancel(db: Session, listing_id: str, seller: str) -> Listing:
        """Withdraw a listing from any open state. Terminal."""
        listing = MarketplaceService.get_listing(db, listing_id)
        if listing.seller != seller:
            raise PermissionDeniedError("Only the seller can cancel a listing")

        MarketplaceService._transition(
            db,
            listing,
            ListingStatus.OPEN,
            {"status": ListingStatus.CANCELLED, "cancelled_at": utcnow()},
        )
        logger.info("Listing %s cancelled by seller", listing_id)
        return listing

    # --- Queries and maintenance ---

    @staticmethod
    def list_listings(
        db: Session,
        seller: str | None = None,
        buyer: str | None = None,
        participant: str | None = None,
        status: str | None = None,
        limit: int = 50,
    ) -> list[Listing]:
        """List listings newest first.

        Without a participant filter or explicit status, only ``active``
        listings are returned (the public storefront).
        """
        if status is not None and status not in ALL_STATUSES:
            raise InvalidRequestError(f"Unknown listing status: {status}")
        limit = max(1, min(limit, MAX_LISTING_LIMIT))

        query = db.query(Listing).options(joinedload(Listing.holding))
        if seller:
            query = query.filter(Listing.seller == seller)
        if buyer:
            query = query.filter(Listing.buyer == buyer)
        if participant:
            query = query.filter(or_(Listing.seller == participant, Listing.buyer == participant))
        if status:
            query = query.filter(Listing.status == status)
        elif not (seller or buyer or participant):
            query = query.filter(Listing.status == ListingStatus.ACTIVE)
        return query.order_by(Listing.created_at.desc()).limit(limit).all()

    @staticmethod
    def release_stale_reservations(
        db: Session, now: datetime | None = None, dry_run: bool = False
    ) -> list[str]:
        """Release ``payment_pending`` listings reserved too long ago.

        Returns the ids of released (or, with ``dry_run``, releasable)
        listings. Disabled when LISTING_RESERVATION_TTL_MINUTES is 0.
        """
        ttl = settings.LISTING_RESERVATION_TTL_MINUTES
        if ttl <= 0:
            return []
        cutoff = (now or utcnow()) - timedelta(minutes=ttl)
        stale = [
            listing_id
            for (listing_id,) in db.query(Listing.id)
            .filter(
                Listing.status == ListingStatus.PAYMENT_PENDING,
                Listing.reserved_at < cutoff,
            )
            .all()
        ]
        if dry_run:
            return stale

        released = []
        for listing_id in stale:
            db.flush()
            result = db.execute(
                update(Listing)
                .where(
                    Listing.id == listing_id,
                    Listing.status == ListingStatus.PAYMENT_PENDING,
                    Listing.reserved_at < cutoff,
                )
                .values(
                    status=ListingStatus.ACTIVE,
                    buyer=None,
                    reserved_at=None,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                released.append(listing_id)
                logger.info("Released stale reservation on listing %s", listing_id)
        return released
