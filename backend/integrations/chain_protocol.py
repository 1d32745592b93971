"""Chain executor protocol definitions.

Defines the interface the award and marketplace services use to move
tokens on-chain and to confirm transactions reported by clients. The
chain itself is treated as an oracle: a finalized transaction either
succeeded or failed, and has a durable reference.
"""

from dataclasses import dataclass, field
from typing import Protocol


def normalize_address(value: str) -> str:
    """Normalize a wallet address: trimmed, lowercase, ``0x``-prefixed."""
    normalized = (value or "").strip().lower()
    if not normalized:
        raise ValueError("Wallet address is required")
    return normalized if normalized.startswith("0x") else f"0x{normalized}"


@dataclass
class TransferInstruction:
    """Move one token object from ``sender`` to ``recipient``."""

    object_id: str
    sender: str
    recipient: str


@dataclass
class ChainReceipt:
    """Finalized outcome of one chain transaction."""

    transaction_reference: str
    success: bool
    error: str | None = None
    # object_id -> new owner address, for objects the transaction moved
    transferred: dict[str, str] = field(default_factory=dict)

    def moved_to(self, object_id: str, recipient: str) -> bool:
        """Return True if this transaction left ``object_id`` owned by ``recipient``."""
        owner = self.transferred.get(object_id.lower())
        return owner is not None and owner == normalize_address(recipient)


class TransactionSigner(Protocol):
    """Signs transaction bytes on behalf of a wallet (external keystore)."""

    def sign(self, tx_bytes: str, sender: str) -> str:
        """Return a serialized signature for base64 ``tx_bytes``."""
        ...


class ChainExecutor(Protocol):
    """Protocol for chain clients.

    Implementations wait for finality before returning. Transport problems
    raise :class:`~integrations.exceptions.ChainTransportError`; requests the
    node refuses raise :class:`~integrations.exceptions.ChainRejectedError`;
    a transaction that finalized as failed returns ``success=False``.
    """

    @property
    def network_name(self) -> str:
        """Return the network name (e.g., 'sui-testnet')."""
        ...

    def execute_transfer(self, instruction: TransferInstruction) -> ChainReceipt:
        """Build, sign, submit and await a token transfer."""
        ...

    def get_transaction(self, transaction_reference: str) -> ChainReceipt:
        """Look up a finalized transaction by reference."""
        ...
