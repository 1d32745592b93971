"""AwardContext model - a challenge or event that badges are awarded in."""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class ContextStatus:
    OPEN = "open"
    CLOSED = "closed"


class AwardContext(Base):
    """A challenge or event that inventory batches can be bound to.

    Closing a context is one-way: once closed, no further awards may be
    issued against it.
    """

    __tablename__ = "award_contexts"
    __table_args__ = (
        CheckConstraint("status IN ('open', 'closed')", name="ck_award_context_status"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    issuer = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    kind = Column(String, nullable=False, default="challenge")  # "challenge" / "event"
    status = Column(String, nullable=False, default=ContextStatus.OPEN)
    closed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    batches = relationship("InventoryBatch", back_populates="context")

    @property
    def is_closed(self) -> bool:
        return self.status == ContextStatus.CLOSED
