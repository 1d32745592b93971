"""Award issuance and ownership API endpoints."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.dependencies import get_chain_executor
from api.helpers import raise_http
from database import get_db
from integrations.chain_protocol import ChainExecutor
from schemas import (
    AwardCommitRequest,
    AwardIssueRequest,
    AwardOutcomeResponse,
    AwardRecordResponse,
    OwnershipHoldingResponse,
)
from schemas.common import WalletAddress
from services.award_service import AwardOutcome, AwardService
from services.depletion_events import DepletionBus, get_depletion_bus
from services.exceptions import BadgeServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["awards"])


def _outcome_response(outcome: AwardOutcome) -> dict:
    """Build an AwardOutcomeResponse-compatible dict."""
    return {
        "state": outcome.state.value,
        "batch_id": outcome.batch_id,
        "award": outcome.award,
        "holding": outcome.holding,
        "remaining_quantity": outcome.remaining,
        "depleted": outcome.depleted,
        "replayed": outcome.replayed,
    }


@router.post("/awards", response_model=AwardOutcomeResponse)
def commit_award(
    body: AwardCommitRequest,
    db: Session = Depends(get_db),
    chain: ChainExecutor = Depends(get_chain_executor),
    bus: DepletionBus = Depends(get_depletion_bus),
):
    """Record an award whose chain transfer the client already executed.

    Safe to retry with the same transaction reference. The response
    carries the batch's remaining quantity so callers can detect
    depletion without a second request.
    """
    try:
        outcome = AwardService.record_award(db, body, chain=chain, bus=bus)
    except BadgeServiceError as e:
        raise_http(db, e)
    return _outcome_response(outcome)


@router.post("/awards/issue", response_model=AwardOutcomeResponse)
def issue_award(
    body: AwardIssueRequest,
    db: Session = Depends(get_db),
    chain: ChainExecutor = Depends(get_chain_executor),
    bus: DepletionBus = Depends(get_depletion_bus),
):
    """Reserve a token, transfer it on-chain and record the award.

    An exhausted batch is a normal outcome (``state == "exhausted"``),
    not an error.
    """
    try:
        outcome = AwardService.issue_award(db, chain, body, bus=bus)
    except BadgeServiceError as e:
        raise_http(db, e)
    return _outcome_response(outcome)


@router.get("/awards", response_model=list[AwardRecordResponse])
def list_awards(
    recipient: WalletAddress | None = None,
    issuer: WalletAddress | None = None,
    context_id: str | None = None,
    db: Session = Depends(get_db),
):
    """List awards, newest first."""
    return AwardService.list_awards(
        db,
        recipient=recipient,
        issuer=issuer,
        context_id=context_id,
    )


@router.get("/holdings", response_model=list[OwnershipHoldingResponse])
def list_holdings(owner: WalletAddress = Query(...), db: Session = Depends(get_db)):
    """List the tokens a wallet currently owns."""
    return AwardService.list_holdings(db, owner)
