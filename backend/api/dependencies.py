"""Shared FastAPI dependencies for chain access."""

from collections.abc import Iterator

from integrations.chain_protocol import ChainExecutor
from integrations.sui_client import SuiRpcClient


def get_chain_executor() -> Iterator[ChainExecutor]:
    """Dependency for injecting the chain client (overridable in tests).

    The default client has no signer, so it can verify transactions but
    not execute server-side transfers. Deployments that issue awards
    server-side override this dependency with a signing client.
    """
    client = SuiRpcClient()
    try:
        yield client
    finally:
        client.close()
