"""Pytest fixtures for live Sui node integration tests."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

from integrations.sui_client import SuiRpcClient


@pytest.fixture(scope="session", autouse=True)
def load_test_env():
    """Load test environment variables from .env.test."""
    env_test_path = Path(__file__).parent.parent.parent / ".env.test"
    if not env_test_path.exists():
        pytest.skip(
            "Sui test settings not found. "
            "Copy .env.test.example to .env.test and fill in SUI_TEST_* values."
        )
    load_dotenv(env_test_path, override=True)


@pytest.fixture(scope="session")
def sui_client(load_test_env):
    """Create a real, read-only SuiRpcClient against the configured node.

    Requires SUI_TEST_RPC_URL in .env.test.
    """
    rpc_url = os.getenv("SUI_TEST_RPC_URL")
    if not rpc_url:
        pytest.skip("Missing Sui test settings: set SUI_TEST_RPC_URL in .env.test")

    client = SuiRpcClient(rpc_url=rpc_url)
    yield client
    client.close()


@pytest.fixture(scope="session")
def known_transfer(load_test_env) -> tuple[str, str, str]:
    """(digest, object_id, recipient) of a finalized transfer on the test node."""
    values = tuple(
        os.getenv(name)
        for name in ("SUI_TEST_TRANSFER_DIGEST", "SUI_TEST_OBJECT_ID", "SUI_TEST_RECIPIENT")
    )
    if not all(values):
        pytest.skip(
            "Missing Sui test transfer: set SUI_TEST_TRANSFER_DIGEST, "
            "SUI_TEST_OBJECT_ID and SUI_TEST_RECIPIENT in .env.test"
        )
    return values
