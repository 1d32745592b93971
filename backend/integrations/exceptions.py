"""Typed exception hierarchy for chain client errors.

Separates transport failures (nothing reached finality, safe to retry)
from transactions the chain rejected and from responses we could not
parse.
"""


class ChainError(Exception):
    """Base exception for all chain-client errors.

    Carries the transaction reference when one is known so callers can
    report it.
    """

    def __init__(self, message: str, transaction_reference: str | None = None):
        self.transaction_reference = transaction_reference
        super().__init__(message)


class ChainTransportError(ChainError):
    """Network failures before finality: timeouts, DNS, connection refused.

    Retriable by default.
    """

    def __init__(
        self,
        message: str,
        transaction_reference: str | None = None,
        retriable: bool = True,
    ):
        self.retriable = retriable
        super().__init__(message, transaction_reference)


class ChainRejectedError(ChainError):
    """The node refused the request or the transaction finalized as failed."""

    def __init__(
        self,
        message: str,
        transaction_reference: str | None = None,
        rpc_code: int | None = None,
    ):
        self.rpc_code = rpc_code
        super().__init__(message, transaction_reference)


class ChainDataError(ChainError):
    """Malformed or unparseable response from the node."""

    pass
