from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from uuid import uuid4

from aiocache import Cache
from eth_utils import to_checksum_address
from loguru import logger
from web3 import AsyncWeb3

from vesper_sdk.adapters.vesper_adapter.metadata import VesperMetadata
from vesper_sdk.core.constants.base import (
    MANTISSA,
    REWARD_TOKEN_SYMBOL,
    VSP_RATE_CACHE_TTL,
    WRAPPED_NATIVE_SYMBOL,
)
from vesper_sdk.core.constants.chains import (
    CHAIN_ID_ETHEREUM,
    UNISWAP_V2_ROUTER_BY_CHAIN,
    canonical_chain_id,
)
from vesper_sdk.core.constants.uniswap_abi import UNISWAP_V2_ROUTER_ABI
from vesper_sdk.core.utils.units import from_base_units

BlockIdentifier = int | str


class UniswapRateOracle:
    """Prices tokens through a Uniswap V2 router's ``getAmountsOut``.

    Given ``resolve_chain_id``, the router and the token list are bound on
    first use to the chain the transport reports, not at construction.
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        metadata: VesperMetadata,
        router_address: str | None = None,
        vsp_address: str | None = None,
        *,
        resolve_chain_id: Callable[[], Awaitable[int]] | None = None,
    ):
        self.web3 = web3
        self.metadata = metadata
        self.router = None
        self.vsp_address: str | None = None
        self._router_address = router_address
        self._vsp_override = vsp_address
        self._resolve_chain_id = resolve_chain_id
        self._bind_lock = asyncio.Lock()
        self._cache = Cache(Cache.MEMORY, namespace=f"vsp-rate-{uuid4().hex}")
        if resolve_chain_id is None:
            if router_address is None:
                raise ValueError("A router address is needed without a chain resolver")
            self._bind(metadata, router_address)

    @property
    def is_bound(self) -> bool:
        return self.router is not None

    def _bind(self, metadata: VesperMetadata, router_address: str) -> None:
        self.metadata = metadata
        self.router = self.web3.eth.contract(
            address=to_checksum_address(router_address), abi=UNISWAP_V2_ROUTER_ABI
        )
        vsp_address = self._vsp_override
        if vsp_address is None:
            vsp = metadata.find_token(REWARD_TOKEN_SYMBOL)
            vsp_address = vsp.address if vsp else None
        self.vsp_address = to_checksum_address(vsp_address) if vsp_address else None

    async def bind(self) -> None:
        if self.is_bound:
            return
        async with self._bind_lock:
            if self.is_bound:
                return
            chain_id = canonical_chain_id(int(await self._resolve_chain_id()))
            router_address = self._router_address or UNISWAP_V2_ROUTER_BY_CHAIN.get(
                chain_id, UNISWAP_V2_ROUTER_BY_CHAIN[CHAIN_ID_ETHEREUM]
            )
            logger.debug(f"Quoting rates on chain {chain_id} via {router_address}")
            self._bind(self.metadata.for_chain(chain_id), router_address)

    async def get_vsp_address(self) -> str | None:
        await self.bind()
        return self.vsp_address

    def get_token_address_of(self, symbol: str) -> str:
        if not self.is_bound:
            raise RuntimeError("Oracle is not bound to a chain yet")
        if symbol == REWARD_TOKEN_SYMBOL:
            if not self.vsp_address:
                raise ValueError("VSP address missing")
            return self.vsp_address
        token = self.metadata.find_token(symbol)
        if token is None:
            raise ValueError(f"Unknown token {symbol}")
        return token.address

    def get_token_decimals_of(self, symbol: str) -> int:
        if symbol == REWARD_TOKEN_SYMBOL:
            return 18
        token = self.metadata.find_token(symbol)
        return token.decimals if token else 18

    async def get_amount_out(
        self,
        amount: int | str,
        symbols_path: Sequence[str],
        block_identifier: BlockIdentifier = "latest",
    ) -> str:
        await self.bind()
        path = [self.get_token_address_of(symbol) for symbol in symbols_path]
        amounts = await self.router.functions.getAmountsOut(int(amount), path).call(
            block_identifier=block_identifier
        )
        return str(amounts[-1])

    async def get_vsp_rate(self, to_symbol: str) -> str:
        """VSP price in ``to_symbol`` base units, or ``"0"`` when unavailable.

        The router is always routed through WETH; direct VSP pairs other than
        VSP/WETH are too thin to quote.
        """
        cache_key = f"vsp-rate-{to_symbol}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        logger.debug(f"Getting VSP/{to_symbol} rate")
        one_vsp = str(MANTISSA)
        try:
            await self.bind()
            if not self.vsp_address:
                raise ValueError("VSP address missing")
            if to_symbol == REWARD_TOKEN_SYMBOL:
                rate = one_vsp
            elif to_symbol == WRAPPED_NATIVE_SYMBOL:
                rate = await self.get_amount_out(
                    one_vsp, [REWARD_TOKEN_SYMBOL, WRAPPED_NATIVE_SYMBOL]
                )
            else:
                rate = await self.get_amount_out(
                    one_vsp, [REWARD_TOKEN_SYMBOL, WRAPPED_NATIVE_SYMBOL, to_symbol]
                )
        except Exception as exc:
            logger.warning(f"Could not get VSP/{to_symbol} rate: {exc}")
            return "0"

        logger.debug(
            f"VSP/{to_symbol} rate is "
            f"{from_base_units(rate, self.get_token_decimals_of(to_symbol))}"
        )
        await self._cache.set(cache_key, rate, ttl=VSP_RATE_CACHE_TTL)
        return rate

    async def clear_cache(self) -> None:
        await self._cache.clear()
