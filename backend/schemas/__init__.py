"""Pydantic request/response schemas."""

from schemas.award import (
    AwardCommitRequest,
    AwardIssueRequest,
    AwardOutcomeResponse,
    AwardRecordResponse,
    OwnershipHoldingResponse,
)
from schemas.depletion import (
    DepletionOptionsResponse,
    DepletionTriggerResponse,
    FinalizeRequest,
    ReassignRequest,
)
from schemas.inventory import (
    AwardContextCreate,
    AwardContextResponse,
    BatchAssignRequest,
    BatchRegister,
    InventoryBatchResponse,
    TokenRecordResponse,
)
from schemas.marketplace import ListingAction, ListingActionResponse, ListingResponse

__all__ = [
    "AwardCommitRequest",
    "AwardContextCreate",
    "AwardContextResponse",
    "AwardIssueRequest",
    "AwardOutcomeResponse",
    "AwardRecordResponse",
    "BatchAssignRequest",
    "BatchRegister",
    "DepletionOptionsResponse",
    "DepletionTriggerResponse",
    "FinalizeRequest",
    "InventoryBatchResponse",
    "ListingAction",
    "ListingActionResponse",
    "ListingResponse",
    "OwnershipHoldingResponse",
    "ReassignRequest",
    "TokenRecordResponse",
]
