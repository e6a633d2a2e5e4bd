from __future__ import annotations

from abc import ABC
from collections.abc import Awaitable, Callable
from typing import Any

from eth_utils import to_checksum_address
from loguru import logger
from web3 import AsyncWeb3

SignCallback = Callable[[dict[str, Any]], Awaitable[bytes]]
SignTypedDataCallback = Callable[[dict[str, Any]], Awaitable[str]]


class BaseAdapter(ABC):
    """Wallet, signer and transport plumbing shared by protocol adapters.

    ``sign_callback`` signs a transaction dict and returns the raw signed
    bytes; ``sign_typed_data`` signs an EIP-712 payload and returns the hex
    signature. Both are optional: without them the node's managed account is
    asked to send and sign.
    """

    adapter_type: str | None = None

    def __init__(
        self,
        name: str,
        config: dict[str, Any] | None = None,
        *,
        web3: AsyncWeb3 | None = None,
        wallet_address: str | None = None,
        sign_callback: SignCallback | None = None,
        sign_typed_data: SignTypedDataCallback | None = None,
    ):
        self.name = name
        self.config = config or {}
        self.logger = logger.bind(adapter=self.__class__.__name__)
        self.web3 = web3
        self._owns_web3 = False
        self.wallet_address: str | None = (
            to_checksum_address(wallet_address) if wallet_address else None
        )
        self.sign_callback = sign_callback
        self.sign_typed_data = sign_typed_data

    async def close(self) -> None:
        if self._owns_web3 and self.web3 is not None:
            await self.web3.provider.disconnect()
