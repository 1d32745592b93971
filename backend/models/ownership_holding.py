"""OwnershipHolding model - current owner of one awarded token."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class OwnershipHolding(Base):
    """Tracks who currently owns an awarded token.

    Created at award time with the recipient as owner. The owner only
    changes when a marketplace listing for the holding completes.
    """

    __tablename__ = "ownership_holdings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    object_id = Column(String, nullable=False, unique=True)
    owner = Column(String, nullable=False, index=True)
    acquired_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    last_transfer_at = Column(DateTime, nullable=True)
    award_id = Column(String(36), ForeignKey("awards.id"), nullable=False, unique=True)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    award = relationship("AwardRecord", back_populates="holding")
    listings = relationship("Listing", back_populates="holding")
