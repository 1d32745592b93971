"""Inventory batch API endpoints."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.dependencies import get_chain_executor
from api.helpers import get_or_404, raise_http
from database import get_db
from integrations.chain_protocol import ChainExecutor
from models import InventoryBatch
from schemas import BatchRegister, InventoryBatchResponse
from schemas.common import WalletAddress
from services.exceptions import BadgeServiceError
from services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.post("/batches", response_model=InventoryBatchResponse, status_code=201)
def register_batch(
    body: BatchRegister,
    db: Session = Depends(get_db),
    chain: ChainExecutor = Depends(get_chain_executor),
):
    """Register a confirmed purchase or custom mint as a batch.

    Re-posting the same transaction reference returns the existing batch.
    """
    try:
        batch = InventoryService.register_batch(db, body, chain)
        db.commit()
    except BadgeServiceError as e:
        raise_http(db, e)
    db.refresh(batch)
    return batch


@router.get("/batches", response_model=list[InventoryBatchResponse])
def list_batches(
    issuer: WalletAddress = Query(...),
    context_id: str | None = None,
    available_only: bool = False,
    unassigned_only: bool = False,
    db: Session = Depends(get_db),
):
    """List an issuer's batches, newest first."""
    return InventoryService.list_batches(
        db,
        issuer,
        context_id=context_id,
        available_only=available_only,
        unassigned_only=unassigned_only,
    )


@router.get("/batches/{batch_id}", response_model=InventoryBatchResponse)
def get_batch(batch_id: str, db: Session = Depends(get_db)):
    """Get one batch with its token ledger."""
    return get_or_404(db, InventoryBatch, batch_id, "Inventory batch not found")
