"""Award context (challenge / event) API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.helpers import get_or_404, raise_http
from database import get_db
from models import AwardContext
from schemas import (
    AwardContextCreate,
    AwardContextResponse,
    BatchAssignRequest,
    InventoryBatchResponse,
)
from services.context_service import ContextService
from services.exceptions import BadgeServiceError

router = APIRouter(prefix="/api/contexts", tags=["contexts"])


@router.post("", response_model=AwardContextResponse, status_code=201)
def create_context(body: AwardContextCreate, db: Session = Depends(get_db)):
    """Create an open challenge or event."""
    context = ContextService.create_context(db, body)
    db.commit()
    db.refresh(context)
    return context


@router.get("/{context_id}", response_model=AwardContextResponse)
def get_context(context_id: str, db: Session = Depends(get_db)):
    """Get one award context."""
    return get_or_404(db, AwardContext, context_id, "Award context not found")


@router.post("/{context_id}/batches", response_model=InventoryBatchResponse)
def assign_batch(context_id: str, body: BatchAssignRequest, db: Session = Depends(get_db)):
    """Bind an unassigned batch with available tokens to the context."""
    try:
        batch = ContextService.bind_batch(db, context_id, body.batch_id, body.issuer)
        db.commit()
    except BadgeServiceError as e:
        raise_http(db, e)
    db.refresh(batch)
    return batch
