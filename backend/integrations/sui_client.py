"""Sui JSON-RPC chain client."""

import itertools
import logging
from typing import Any, Optional

import httpx

from config import settings
from integrations.chain_protocol import (
    ChainReceipt,
    TransactionSigner,
    TransferInstruction,
    normalize_address,
)
from integrations.exceptions import (
    ChainDataError,
    ChainRejectedError,
    ChainTransportError,
)

logger = logging.getLogger(__name__)

# Response options requested for every executed / fetched transaction
_TX_OPTIONS = {"showEffects": True, "showObjectChanges": True}


def _parse_receipt(result: Any) -> ChainReceipt:
    """Map a ``SuiTransactionBlockResponse`` to a ChainReceipt."""
    if not isinstance(result, dict) or "digest" not in result:
        raise ChainDataError("Sui: transaction response missing digest")

    digest = result["digest"]
    effects = result.get("effects") or {}
    status = (effects.get("status") or {}).get("status")
    if status is None:
        raise ChainDataError(
            "Sui: transaction response missing effects status",
            transaction_reference=digest,
        )

    transferred: dict[str, str] = {}
    for change in result.get("objectChanges") or []:
        owner = change.get("owner") or change.get("recipient")
        if not isinstance(owner, dict) or "AddressOwner" not in owner:
            continue
        object_id = change.get("objectId")
        if object_id:
            transferred[object_id.lower()] = normalize_address(owner["AddressOwner"])

    return ChainReceipt(
        transaction_reference=digest,
        success=status == "success",
        error=(effects.get("status") or {}).get("error"),
        transferred=transferred,
    )


class SuiRpcClient:
    """Chain executor backed by a Sui full node's JSON-RPC API.

    Transfers are built with ``unsafe_transferObject``, signed by the
    injected :class:`TransactionSigner` and submitted with
    ``WaitForLocalExecution`` so the call returns after finality.
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        signer: Optional[TransactionSigner] = None,
        timeout: Optional[float] = None,
        gas_budget: Optional[int] = None,
    ):
        """Initialize the client.

        Args:
            rpc_url: Full node URL. Defaults to ``settings.SUI_RPC_URL``.
            signer: Wallet signer; required only for :meth:`execute_transfer`.
            timeout: Per-request timeout in seconds. Defaults to the
                     configured finality window.
            gas_budget: Gas budget for built transfers.
        """
        self._client = httpx.Client(
            base_url=rpc_url or settings.SUI_RPC_URL,
            timeout=timeout or settings.CHAIN_FINALITY_TIMEOUT_SECONDS,
        )
        self._signer = signer
        self._gas_budget = gas_budget or settings.CHAIN_GAS_BUDGET
        self._ids = itertools.count(1)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    @property
    def network_name(self) -> str:
        return "sui"

    def _call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC call and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = self._client.request("POST", "", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ChainTransportError(
                f"Sui: {method} returned HTTP {e.response.status_code}",
                retriable=e.response.status_code == 429 or e.response.status_code >= 500,
            ) from e
        except httpx.HTTPError as e:
            raise ChainTransportError(f"Sui: {method} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise ChainDataError(f"Sui: {method} returned non-JSON body") from e

        if body.get("error"):
            error = body["error"]
            raise ChainRejectedError(
                f"Sui: {method} rejected: {error.get('message', error)}",
                rpc_code=error.get("code"),
            )
        if "result" not in body:
            raise ChainDataError(f"Sui: {method} response missing result")
        return body["result"]

    def execute_transfer(self, instruction: TransferInstruction) -> ChainReceipt:
        """Transfer ``instruction.object_id`` to ``instruction.recipient``.

        Raises:
            ChainRejectedError: No signer is configured, or the node
                refused to build or execute the transaction.
            ChainTransportError: The node could not be reached.
        """
        if self._signer is None:
            raise ChainRejectedError("Sui: no transaction signer configured")

        sender = normalize_address(instruction.sender)
        recipient = normalize_address(instruction.recipient)
        logger.info(
            "Sui: building transfer of %s from %s to %s",
            instruction.object_id, sender, recipient,
        )
        built = self._call(
            "unsafe_transferObject",
            [sender, instruction.object_id, None, str(self._gas_budget), recipient],
        )
        tx_bytes = built.get("txBytes") if isinstance(built, dict) else None
        if not tx_bytes:
            raise ChainDataError("Sui: unsafe_transferObject returned no txBytes")

        signature = self._signer.sign(tx_bytes, sender)
        result = self._call(
            "sui_executeTransactionBlock",
            [tx_bytes, [signature], _TX_OPTIONS, "WaitForLocalExecution"],
        )
        receipt = _parse_receipt(result)
        logger.info(
            "Sui: transfer %s finalized (success=%s)",
            receipt.transaction_reference, receipt.success,
        )
        return receipt

    def get_transaction(self, transaction_reference: str) -> ChainReceipt:
        """Fetch a finalized transaction by digest."""
        result = self._call("sui_getTransactionBlock", [transaction_reference, _TX_OPTIONS])
        return _parse_receipt(result)
