"""Confirm client-reported chain transactions before trusting them."""

import logging

from config import settings
from integrations.chain_protocol import ChainExecutor, ChainReceipt
from integrations.exceptions import ChainError, ChainTransportError
from services.exceptions import ChainFailedError, InvalidRequestError

logger = logging.getLogger(__name__)


def chain_failure(error: ChainError, action: str) -> ChainFailedError:
    """Wrap a chain-client exception, keeping transport vs rejection apart."""
    kind = "transport" if isinstance(error, ChainTransportError) else "rejected"
    return ChainFailedError(
        f"{action} failed: {error}",
        kind=kind,
        transaction_reference=error.transaction_reference,
    )


def verify_transaction(
    chain: ChainExecutor | None,
    transaction_reference: str,
    object_id: str | None = None,
    recipient: str | None = None,
) -> ChainReceipt | None:
    """Re-query a transaction and check it did what the caller claims.

    Returns None without calling the chain when verification is disabled.

    Raises:
        ChainFailedError: The lookup failed or the transaction finalized
            as failed.
        InvalidRequestError: The transaction succeeded but did not move
            ``object_id`` to ``recipient``.
    """
    if chain is None or not settings.VERIFY_CHAIN_TRANSACTIONS:
        return None

    try:
        receipt = chain.get_transaction(transaction_reference)
    except ChainError as e:
        logger.warning(
            "Verification lookup failed for %s", transaction_reference, exc_info=True
        )
        raise chain_failure(e, "Transaction lookup") from e

    if not receipt.success:
        raise ChainFailedError(
            f"Transaction {transaction_reference} did not succeed: {receipt.error}",
            kind="rejected",
            transaction_reference=transaction_reference,
        )

    if object_id is not None and recipient is not None:
        if not receipt.moved_to(object_id, recipient):
            raise InvalidRequestError(
                f"Transaction {transaction_reference} did not transfer "
                f"{object_id} to {recipient}",
                code="transaction_mismatch",
            )

    logger.debug("Verified transaction %s", transaction_reference)
    return receipt
