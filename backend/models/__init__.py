"""SQLAlchemy ORM models."""

from .award_context import AwardContext, ContextStatus
from .inventory_batch import ChainStatus, InventoryBatch
from .token_record import TokenRecord, TokenStatus
from .award_record import AwardRecord
from .ownership_holding import OwnershipHolding
from .listing import Listing, ListingStatus
from .depletion_trigger import DepletionTrigger, TriggerStatus
from .utils import generate_uuid

__all__ = ["AwardContext", "AwardRecord", "ChainStatus", "ContextStatus", "DepletionTrigger", "InventoryBatch", "Listing", "ListingStatus", "OwnershipHolding", "TokenRecord", "TokenStatus", "TriggerStatus", "generate_uuid"]
