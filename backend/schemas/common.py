"""Shared pydantic field types."""

from typing import Annotated

from pydantic import AfterValidator, StringConstraints

from integrations.chain_protocol import normalize_address

# A caller or counterparty wallet, normalized to lowercase 0x-prefixed form
WalletAddress = Annotated[str, AfterValidator(normalize_address)]

# A chain transaction digest or object id
ChainReference = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
