"""Listing model - a resale offer for one ownership holding."""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Numeric, String, text
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class ListingStatus:
    ACTIVE = "active"
    PAYMENT_PENDING = "payment_pending"
    AWAITING_TRANSFER = "awaiting_transfer"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    OPEN = (ACTIVE, PAYMENT_PENDING, AWAITING_TRANSFER)
    TERMINAL = (COMPLETED, CANCELLED)


_OPEN_STATUS_SQL = "status IN ('active', 'payment_pending', 'awaiting_transfer')"


class Listing(Base):
    """A seller's offer to resell a holding for a fixed price.

    Settlement is two independent chain operations: the buyer pays the
    seller directly (reference recorded, not verified here) and the seller
    then transfers the token (verified before completion).
    """

    __tablename__ = "listings"
    __table_args__ = (
        CheckConstraint("price > 0", name="ck_listing_price_positive"),
        CheckConstraint(
            "status IN ('active', 'payment_pending', 'awaiting_transfer', 'completed', 'cancelled')",
            name="ck_listing_status",
        ),
        # At most one open listing per holding
        Index(
            "uix_listing_open_per_holding",
            "holding_id",
            unique=True,
            sqlite_where=text(_OPEN_STATUS_SQL),
            postgresql_where=text(_OPEN_STATUS_SQL),
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    holding_id = Column(String(36), ForeignKey("ownership_holdings.id"), nullable=False, index=True)
    seller = Column(String, nullable=False, index=True)
    price = Column(Numeric(24, 9), nullable=False)
    status = Column(String, nullable=False, default=ListingStatus.ACTIVE, index=True)
    buyer = Column(String, nullable=True, index=True)
    payment_transaction_reference = Column(String, nullable=True)
    transfer_transaction_reference = Column(String, nullable=True)
    reserved_at = Column(DateTime, nullable=True)
    payment_submitted_at = Column(DateTime, nullable=True)
    transfer_completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    holding = relationship("OwnershipHolding", back_populates="listings")

    @property
    def is_open(self) -> bool:
        return self.status in ListingStatus.OPEN
