from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from web3 import AsyncWeb3

from vesper_sdk.adapters.vesper_adapter import pools_info, portfolio
from vesper_sdk.adapters.vesper_adapter.metadata import (
    VesperMetadata,
    filter_pools,
    load_metadata,
)
from vesper_sdk.adapters.vesper_adapter.oracle import UniswapRateOracle
from vesper_sdk.adapters.vesper_adapter.pool import PoolMethods
from vesper_sdk.adapters.vesper_adapter.registry import ContractRegistry
from vesper_sdk.core.adapters.BaseAdapter import (
    BaseAdapter,
    SignCallback,
    SignTypedDataCallback,
)
from vesper_sdk.core.adapters.decorators import require_wallet, status_tuple
from vesper_sdk.core.adapters.models import OperationResult
from vesper_sdk.core.config import (
    get_dust_tolerance,
    get_expected_gas,
    get_gas_overestimation,
    get_metadata_path,
    get_stages,
)
from vesper_sdk.core.constants.chains import (
    CHAIN_ID_ETHEREUM,
    UNISWAP_V2_ROUTER_BY_CHAIN,
    canonical_chain_id,
)
from vesper_sdk.core.utils.events import OperationEvents
from vesper_sdk.core.utils.web3 import get_web3_from_chain_id


class VesperAdapter(BaseAdapter):
    """Vesper pools: reads, deposits, withdrawals, rewards and migrations.

    Pass either a ``web3`` instance or a ``chain_id`` with RPCs configured.
    Pool listings come from ``metadata`` (dict, model or JSON path) or the
    configured ``vesper.metadata_path``.
    """

    adapter_type = "VESPER"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        web3: AsyncWeb3 | None = None,
        chain_id: int | None = None,
        wallet_address: str | None = None,
        sign_callback: SignCallback | None = None,
        sign_typed_data: SignTypedDataCallback | None = None,
        metadata: VesperMetadata | dict[str, Any] | str | Path | None = None,
        stages: Iterable[str] | str | None = None,
        overestimation: float | None = None,
        dust_tolerance: float | None = None,
        router_address: str | None = None,
    ):
        super().__init__(
            "vesper_adapter",
            config,
            web3=web3,
            wallet_address=wallet_address,
            sign_callback=sign_callback,
            sign_typed_data=sign_typed_data,
        )
        if self.web3 is None:
            if chain_id is None:
                raise ValueError("Either web3 or chain_id is required")
            self.web3 = get_web3_from_chain_id(chain_id)
            self._owns_web3 = True

        source = metadata if metadata is not None else get_metadata_path()
        if source is None:
            raise ValueError("No pool metadata given and vesper.metadata_path not set")
        self.metadata = load_metadata(source)

        self.stages = stages if stages is not None else get_stages()
        self.overestimation = (
            overestimation if overestimation is not None else get_gas_overestimation()
        )
        self.dust_tolerance = (
            dust_tolerance if dust_tolerance is not None else get_dust_tolerance()
        )
        self.expected_gas = get_expected_gas()

        self.registry = ContractRegistry(
            self.web3, self.metadata, self.stages, chain_id=chain_id
        )
        # Rates are quoted on the router of the configured chain; with only a
        # transport the oracle binds to the chain it reports on first use.
        if chain_id is not None:
            router_chain = canonical_chain_id(chain_id)
            router = router_address or UNISWAP_V2_ROUTER_BY_CHAIN.get(
                router_chain, UNISWAP_V2_ROUTER_BY_CHAIN[CHAIN_ID_ETHEREUM]
            )
            self.oracle = UniswapRateOracle(
                self.web3, self.metadata.for_chain(router_chain), router
            )
        else:
            self.oracle = UniswapRateOracle(
                self.web3,
                self.metadata,
                router_address,
                resolve_chain_id=self.registry.get_chain_id,
            )
        self._pools: dict[str, PoolMethods] = {}

    def pool(self, name_or_address: str) -> PoolMethods:
        """Methods of one pool; contracts are bound on first use."""
        if name_or_address not in self._pools:
            self._pools[name_or_address] = PoolMethods(
                self.registry,
                name_or_address,
                self.oracle,
                wallet_address=self.wallet_address,
                sign_callback=self.sign_callback,
                sign_typed_data=self.sign_typed_data,
                overestimation=self.overestimation,
                dust_tolerance=self.dust_tolerance,
                expected_gas=self.expected_gas,
            )
        return self._pools[name_or_address]

    async def pools(
        self, stages: Iterable[str] | str | None = None
    ) -> list[PoolMethods]:
        resolved = await self.registry.resolve()
        listed = resolved.pool_list
        if stages is not None:
            listed = filter_pools(listed, stages)
        return [self.pool(p.name) for p in listed]

    def _account(self, address: str | None) -> str:
        account = address or self.wallet_address
        if not account:
            raise ValueError("No account address given and no wallet configured")
        return account

    @status_tuple
    async def get_pools(
        self, stages: Iterable[str] | str | None = None
    ) -> list[dict[str, Any]]:
        return await pools_info.get_pools(await self.pools(stages), self.oracle)

    @status_tuple
    async def get_portfolio(self, address: str | None = None) -> dict[str, dict[str, Any]]:
        account = self._account(address)
        return await portfolio.get_portfolio(await self.pools(), account)

    @status_tuple
    async def get_asset_portfolio(self, address: str | None = None) -> dict[str, str]:
        account = self._account(address)
        return await portfolio.get_asset_portfolio(await self.pools(), account)

    @require_wallet
    @status_tuple
    async def deposit(
        self,
        pool: str,
        amount: int | str,
        *,
        approval_amount: int | str | None = None,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        return await self.pool(pool).approve_and_deposit(
            amount, approval_amount, tx_params=tx_params, events=events
        )

    @require_wallet
    @status_tuple
    async def withdraw(
        self,
        pool: str,
        amount: int | str,
        *,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        return await self.pool(pool).withdraw(amount, tx_params=tx_params, events=events)

    @require_wallet
    @status_tuple
    async def claim_rewards(
        self,
        pool: str,
        *,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        return await self.pool(pool).claim_rewards(tx_params=tx_params, events=events)

    @require_wallet
    @status_tuple
    async def rebalance(
        self,
        pool: str,
        *,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        return await self.pool(pool).rebalance(tx_params=tx_params, events=events)

    @require_wallet
    @status_tuple
    async def migrate(
        self,
        pool: str,
        *,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        return await self.pool(pool).migrate(tx_params=tx_params, events=events)
