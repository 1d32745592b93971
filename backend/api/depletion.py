"""Depletion / replenishment API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.helpers import raise_http
from database import get_db
from schemas import (
    DepletionOptionsResponse,
    DepletionTriggerResponse,
    FinalizeRequest,
    ReassignRequest,
)
from schemas.common import WalletAddress
from services.depletion_service import DepletionService
from services.exceptions import BadgeServiceError

router = APIRouter(prefix="/api/depletion", tags=["depletion"])


@router.get("", response_model=list[DepletionTriggerResponse])
def list_open_triggers(
    issuer: WalletAddress | None = None,
    context_id: str | None = None,
    db: Session = Depends(get_db),
):
    """List unresolved depletion triggers."""
    return DepletionService.list_open_triggers(
        db,
        issuer=issuer,
        context_id=context_id,
    )


@router.get("/{trigger_id}", response_model=DepletionOptionsResponse)
def get_options(trigger_id: str, db: Session = Depends(get_db)):
    """Get the trigger and the resolutions currently offered.

    Reassign is offered only when the issuer owns an unassigned batch with
    available tokens; otherwise finalize is the only option.
    """
    try:
        options = DepletionService.get_options(db, trigger_id)
    except BadgeServiceError as e:
        raise_http(db, e)
    return {
        "trigger": options.trigger,
        "can_reassign": options.can_reassign,
        "can_finalize": options.can_finalize,
        "candidate_batches": options.candidate_batches,
    }


@router.post("/{trigger_id}/reassign", response_model=DepletionTriggerResponse)
def reassign(trigger_id: str, body: ReassignRequest, db: Session = Depends(get_db)):
    """Bind a replacement batch to the depleted context."""
    try:
        trigger = DepletionService.reassign(db, trigger_id, body.batch_id, body.issuer)
        db.commit()
    except BadgeServiceError as e:
        raise_http(db, e)
    db.refresh(trigger)
    return trigger


@router.post("/{trigger_id}/finalize", response_model=DepletionTriggerResponse)
def finalize(trigger_id: str, body: FinalizeRequest, db: Session = Depends(get_db)):
    """Permanently close the depleted context. Requires ``confirm: true``."""
    try:
        trigger = DepletionService.finalize(db, trigger_id, body.issuer, confirm=body.confirm)
        db.commit()
    except BadgeServiceError as e:
        raise_http(db, e)
    db.refresh(trigger)
    return trigger
