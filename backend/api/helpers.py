"""Shared API helpers for route handlers.

Lookup and error-mapping helpers used across multiple route files.
"""

from typing import NoReturn, TypeVar

from fastapi import HTTPException
from sqlalchemy.orm import Session

from database import Base
from services.exceptions import (
    BadgeServiceError,
    ChainFailedError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    ReconcileFailedError,
    StateConflictError,
)

T = TypeVar("T", bound=Base)

# Checked in order; subclasses before their bases
_STATUS_CODES: list[tuple[type[BadgeServiceError], int]] = [
    (InvalidRequestError, 400),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (StateConflictError, 409),
    (ChainFailedError, 502),
    (ReconcileFailedError, 500),
]


def get_or_404(db: Session, model: type[T], entity_id: str, detail: str = "Not found") -> T:
    """Fetch a single entity by primary key or raise 404.

    Args:
        db: Database session.
        model: SQLAlchemy model class.
        entity_id: Primary key value.
        detail: Error message for the 404 response.

    Returns:
        The entity instance.

    Raises:
        HTTPException: 404 if the entity doesn't exist.
    """
    entity = db.query(model).filter(model.id == entity_id).first()
    if not entity:
        raise HTTPException(status_code=404, detail=detail)
    return entity


def status_code_for(error: BadgeServiceError) -> int:
    """Return the HTTP status for a service error (500 if unmapped)."""
    for error_cls, status_code in _STATUS_CODES:
        if isinstance(error, error_cls):
            return status_code
    return 500


def raise_http(db: Session, error: BadgeServiceError) -> NoReturn:
    """Roll back the request's transaction and re-raise as an HTTPException.

    The response detail is ``{"code": ..., "message": ..., **details}`` so
    clients can branch on ``code`` (e.g. ``stale_state``) without parsing
    the message.

    Args:
        db: Database session for the request.
        error: The service error to convert.

    Raises:
        HTTPException: Always.
    """
    db.rollback()
    raise HTTPException(status_code=status_code_for(error), detail=error.to_dict()) from error

