"""Pool contract generations.

V1 pools delegate strategy, rewards and fee bookkeeping to a shared
controller. V3 pools keep that state themselves. Every version-specific call
goes through the shape picked for a pool when its handle is built.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from vesper_sdk.core.constants.base import ZERO_ADDRESS
from vesper_sdk.core.constants.vesper_abi import POOL_V1_ABI, POOL_V3_ABI
from vesper_sdk.core.errors import NoStrategyFound

BlockIdentifier = int | str
StrategyGetter = Callable[[], Awaitable[Any]]


class PoolShape(ABC):
    version: int
    abi: list[dict[str, Any]]

    @abstractmethod
    async def strategy_address(
        self, pool: Any, controller: Any | None, block_identifier: BlockIdentifier
    ) -> str: ...

    @abstractmethod
    async def pool_rewards_address(
        self, pool: Any, controller: Any | None, block_identifier: BlockIdentifier
    ) -> str: ...

    @abstractmethod
    async def interest_fee(
        self, pool: Any, controller: Any | None, block_identifier: BlockIdentifier
    ) -> int: ...

    @abstractmethod
    def deposit_call(self, pool: Any, amount: int, *, native: bool) -> Any: ...

    @abstractmethod
    async def rebalance_call(self, pool: Any, get_strategy: StrategyGetter) -> Any: ...

    def withdraw_call(self, pool: Any, shares: int, *, native: bool) -> Any:
        if native:
            return pool.functions.withdrawETH(int(shares))
        return pool.functions.withdraw(int(shares))


def _require_controller(controller: Any | None, what: str) -> Any:
    if controller is None:
        raise NoStrategyFound(f"No controller configured to look up the {what}")
    return controller


class V1PoolShape(PoolShape):
    version = 1
    abi = POOL_V1_ABI

    async def strategy_address(self, pool, controller, block_identifier):
        controller = _require_controller(controller, "strategy")
        return await controller.functions.strategy(pool.address).call(
            block_identifier=block_identifier
        )

    async def pool_rewards_address(self, pool, controller, block_identifier):
        controller = _require_controller(controller, "pool rewards")
        return await controller.functions.poolRewards(pool.address).call(
            block_identifier=block_identifier
        )

    async def interest_fee(self, pool, controller, block_identifier):
        controller = _require_controller(controller, "interest fee")
        return int(
            await controller.functions.interestFee(pool.address).call(
                block_identifier=block_identifier
            )
        )

    def deposit_call(self, pool, amount, *, native):
        # deposit is overloaded: payable deposit() for ETH pools.
        if native:
            return pool.get_function_by_signature("deposit()")()
        return pool.get_function_by_signature("deposit(uint256)")(int(amount))

    async def rebalance_call(self, pool, get_strategy):
        return pool.functions.rebalance()


class V3PoolShape(PoolShape):
    version = 3
    abi = POOL_V3_ABI

    async def strategy_address(self, pool, controller, block_identifier):
        strategies = await pool.functions.getStrategies().call(
            block_identifier=block_identifier
        )
        return strategies[0] if strategies else ZERO_ADDRESS

    async def pool_rewards_address(self, pool, controller, block_identifier):
        return await pool.functions.poolRewards().call(block_identifier=block_identifier)

    async def interest_fee(self, pool, controller, block_identifier):
        strategy = await self.strategy_address(pool, controller, block_identifier)
        if strategy == ZERO_ADDRESS:
            raise NoStrategyFound("No strategy contract found")
        config = await pool.functions.strategy(strategy).call(
            block_identifier=block_identifier
        )
        return int(config[1])

    def deposit_call(self, pool, amount, *, native):
        if native:
            return pool.functions.depositETH()
        return pool.functions.deposit(int(amount))

    async def rebalance_call(self, pool, get_strategy):
        strategy = await get_strategy()
        return strategy.functions.rebalance()


_SHAPES: dict[int, PoolShape] = {1: V1PoolShape(), 3: V3PoolShape()}


def shape_for(version: int) -> PoolShape:
    try:
        return _SHAPES[int(version)]
    except KeyError:
        raise ValueError(f"Unsupported pool version {version}") from None
