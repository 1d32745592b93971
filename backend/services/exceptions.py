"""Domain exceptions raised by the inventory, award and marketplace services.

Each exception has a stable ``code`` so the API layer can hand callers a
specific reason instead of a generic failure.
"""

from typing import Any


class BadgeServiceError(Exception):
    """Base exception for all service-level errors."""

    code = "error"

    def __init__(self, message: str, code: str | None = None, **details: Any):
        if code is not None:
            self.code = code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self), **self.details}


class InvalidRequestError(BadgeServiceError, ValueError):
    """Missing or malformed input, rejected before any state change."""

    code = "invalid_request"


class NotFoundError(BadgeServiceError):
    """A referenced batch, token, context, holding or listing does not exist."""

    code = "not_found"


class PermissionDeniedError(BadgeServiceError):
    """The caller identity is not allowed to perform the action."""

    code = "forbidden"


class StateConflictError(BadgeServiceError):
    """The current state does not satisfy the action's precondition.

    Callers should re-fetch and decide again rather than repeat the call.
    """

    code = "state_conflict"


class TokenConflictError(StateConflictError):
    """Another writer awarded (or leased) the token first."""

    code = "token_conflict"


class StaleStateError(StateConflictError):
    """A listing action was attempted from the wrong source state."""

    code = "stale_state"

    def __init__(self, message: str, expected: tuple[str, ...] | str, actual: str):
        if isinstance(expected, str):
            expected = (expected,)
        self.expected = expected
        self.actual = actual
        super().__init__(message, expected=list(expected), actual=actual)


class ListingUnavailableError(StaleStateError):
    """The listing is no longer open for reservation (another buyer won)."""

    code = "listing_unavailable"


class ChainFailedError(BadgeServiceError):
    """The chain transaction failed or could not be submitted.

    No off-chain state was changed; the whole operation may be retried.
    ``kind`` is ``"transport"`` when the node could not be reached and
    ``"rejected"`` when the chain refused or failed the transaction.
    """

    code = "chain_failed"

    def __init__(
        self,
        message: str,
        kind: str,
        transaction_reference: str | None = None,
        **details: Any,
    ):
        self.kind = kind
        self.transaction_reference = transaction_reference
        super().__init__(
            message,
            kind=kind,
            transaction_reference=transaction_reference,
            **details,
        )


class ReconcileFailedError(BadgeServiceError):
    """The chain transfer succeeded but the off-chain commit did not.

    The token has moved on-chain with no award or holding row. Re-running
    the commit with ``transaction_reference`` completes it without a new
    chain transaction.
    """

    code = "reconcile_failed"

    def __init__(
        self,
        message: str,
        transaction_reference: str,
        batch_id: str,
        object_id: str,
        recipient: str,
        step: str,
    ):
        self.transaction_reference = transaction_reference
        self.batch_id = batch_id
        self.object_id = object_id
        self.recipient = recipient
        self.step = step
        super().__init__(
            message,
            transaction_reference=transaction_reference,
            batch_id=batch_id,
            object_id=object_id,
            recipient=recipient,
            step=step,
        )
