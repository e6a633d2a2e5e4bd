from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from eth_utils import to_checksum_address
from loguru import logger
from web3 import AsyncWeb3

from vesper_sdk.adapters.vesper_adapter.metadata import (
    ContractMetadata,
    PoolMetadata,
    VesperMetadata,
    filter_pools,
)
from vesper_sdk.adapters.vesper_adapter.shapes import PoolShape, shape_for
from vesper_sdk.core.constants.chains import canonical_chain_id
from vesper_sdk.core.constants.erc20_abi import ERC20_ABI
from vesper_sdk.core.constants.vesper_abi import (
    COLLATERAL_MANAGER_ABI,
    CONTROLLER_ABI,
)
from vesper_sdk.core.errors import UnsupportedNetwork


@dataclass
class PoolHandle:
    """Bound contracts for one pool. Read-only and safe to share."""

    meta: PoolMetadata
    contract: Any
    asset_contract: Any | None
    asset_decimals: int
    shape: PoolShape

    @property
    def name(self) -> str:
        return self.meta.name

    @property
    def address(self) -> str:
        return self.contract.address

    @property
    def asset(self) -> str:
        return self.meta.asset

    @property
    def is_native(self) -> bool:
        return self.meta.is_native


@dataclass
class ResolvedContracts:
    chain_id: int
    metadata: VesperMetadata
    controller: Any | None
    collateral_manager: Any | None
    pools: dict[str, PoolHandle] = field(default_factory=dict)
    asset_contracts: dict[str, Any] = field(default_factory=dict)
    pool_list: list[PoolMetadata] = field(default_factory=list)

    def pool(self, name_or_address: str) -> PoolHandle:
        handle = self.pools.get(name_or_address)
        if handle is None and name_or_address.startswith("0x"):
            handle = self.pools.get(to_checksum_address(name_or_address))
        if handle is None:
            raise KeyError(f"Unknown pool {name_or_address}")
        return handle

    def handles(self) -> list[PoolHandle]:
        return [self.pools[p.name] for p in self.pool_list]


class ContractRegistry:
    """Binds contract handles for the network the transport is connected to.

    Resolution happens once per registry; the chain id lookup is shared by
    every caller awaiting ``resolve`` concurrently.
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        metadata: VesperMetadata,
        stages: Iterable[str] | str | None = None,
        chain_id: int | None = None,
    ):
        self.web3 = web3
        self.metadata = metadata
        self.stages = stages
        self._chain_id = chain_id
        self._resolved: ResolvedContracts | None = None
        self._lock = asyncio.Lock()

    async def get_chain_id(self) -> int:
        raw = self._chain_id if self._chain_id is not None else await self.web3.eth.chain_id
        return canonical_chain_id(raw)

    async def resolve(self) -> ResolvedContracts:
        async with self._lock:
            if self._resolved is None:
                self._resolved = await self._resolve()
            return self._resolved

    def _bind(self, listing: ContractMetadata | None, abi: list[dict[str, Any]]) -> Any:
        if listing is None:
            return None
        return self.web3.eth.contract(address=listing.address, abi=abi)

    async def _resolve(self) -> ResolvedContracts:
        chain_id = await self.get_chain_id()
        logger.debug(f"Chain ID is {chain_id}")
        metadata = self.metadata.for_chain(chain_id)

        pools = filter_pools(metadata.pools, self.stages)
        if not pools:
            logger.warning(f"No pool contracts in chain {chain_id}")
            raise UnsupportedNetwork(chain_id)

        resolved = ResolvedContracts(
            chain_id=chain_id,
            metadata=metadata,
            controller=self._bind(metadata.find_controller("controller"), CONTROLLER_ABI),
            collateral_manager=self._bind(
                metadata.find_controller("collateralManager"), COLLATERAL_MANAGER_ABI
            ),
            pool_list=pools,
        )

        for pool in pools:
            handle = self._handle_for(pool, resolved)
            resolved.pools[pool.name] = handle
            resolved.pools[pool.address] = handle

        logger.debug(
            f"Resolved {len(pools)} pool(s) on chain {chain_id}: "
            + ", ".join(p.name for p in pools)
        )
        return resolved

    def _handle_for(self, pool: PoolMetadata, resolved: ResolvedContracts) -> PoolHandle:
        if not pool.is_native and pool.asset not in resolved.asset_contracts:
            token = resolved.metadata.find_token(pool.asset)
            if token is None:
                raise ValueError(f"Unknown asset {pool.asset} of pool {pool.name}")
            resolved.asset_contracts[pool.asset] = self.web3.eth.contract(
                address=token.address, abi=ERC20_ABI
            )

        shape = shape_for(pool.version)
        return PoolHandle(
            meta=pool,
            contract=self.web3.eth.contract(address=pool.address, abi=shape.abi),
            asset_contract=resolved.asset_contracts.get(pool.asset),
            asset_decimals=resolved.metadata.asset_decimals(pool.asset),
            shape=shape,
        )

    async def successor_of(self, handle: PoolHandle) -> PoolHandle:
        """Pool that supersedes ``handle``, even when filtered out by stage."""
        target = handle.meta.superseded_by
        if not target:
            raise ValueError(f"Pool {handle.name} has no successor")
        resolved = await self.resolve()
        try:
            return resolved.pool(target)
        except KeyError:
            pass
        lowered = target.lower()
        for pool in resolved.metadata.pools:
            if pool.address and (pool.name == target or pool.address.lower() == lowered):
                return self._handle_for(pool, resolved)
        raise KeyError(f"Successor {target} of {handle.name} is not listed")
