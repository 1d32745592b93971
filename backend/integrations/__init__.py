"""External chain integrations.

This package contains:
- Chain protocol: Common interface for chain executors
- Sui client: JSON-RPC integration with a Sui full node
- Exceptions: Typed transport / rejection / data errors
"""

from integrations.chain_protocol import (
    ChainExecutor,
    ChainReceipt,
    TransactionSigner,
    TransferInstruction,
)
from integrations.sui_client import SuiRpcClient

__all__ = [
    "ChainExecutor",
    "ChainReceipt",
    "SuiRpcClient",
    "TransactionSigner",
    "TransferInstruction",
]
