"""Derived pool values composed from plain contract reads.

Every method here is side-effect free. The informational ones (interest
earned, claimable rewards, rewards rate, rebalance eligibility) degrade to a
zero/false default instead of raising.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from eth_utils import to_checksum_address
from loguru import logger

from vesper_sdk.adapters.vesper_adapter.oracle import UniswapRateOracle
from vesper_sdk.adapters.vesper_adapter.registry import (
    ContractRegistry,
    PoolHandle,
    ResolvedContracts,
)
from vesper_sdk.core.constants.base import (
    MANTISSA,
    POOL_TOKEN_DECIMALS,
    REFERENCE_ASSET_SYMBOL,
    REWARD_TOKEN_SYMBOL,
    TIMELOCKED_POOLS,
    WRAPPED_NATIVE_SYMBOL,
    ZERO_ADDRESS,
)
from vesper_sdk.core.constants.erc20_abi import ERC20_ABI
from vesper_sdk.core.constants.vesper_abi import (
    POOL_REWARDS_ABI,
    STRATEGY_ABI,
    VAULT_INFO_KEYS,
)
from vesper_sdk.core.errors import NoRewardsContract, NoStrategyFound
from vesper_sdk.core.utils.fallback import first_successful
from vesper_sdk.core.utils.units import from_base_units

BlockIdentifier = int | str

LEGACY_LENDING_TOKEN = "aDAI"
LEGACY_DEBT_TOKEN = "DAI"


def _same_address(a: str | None, b: str | None) -> bool:
    return bool(a) and bool(b) and str(a).lower() == str(b).lower()


class PoolReader:
    def __init__(
        self,
        registry: ContractRegistry,
        pool: str,
        oracle: UniswapRateOracle,
        *,
        wallet_address: str | None = None,
    ):
        self.registry = registry
        self.web3 = registry.web3
        self.key = pool
        self.oracle = oracle
        self.wallet_address = (
            to_checksum_address(wallet_address) if wallet_address else None
        )
        self.logger = logger.bind(pool=pool)

    async def _contracts(self) -> tuple[ResolvedContracts, PoolHandle]:
        resolved = await self.registry.resolve()
        return resolved, resolved.pool(self.key)

    async def handle(self) -> PoolHandle:
        _, handle = await self._contracts()
        return handle

    def _account(self, address: str | None) -> str:
        account = address or self.wallet_address
        if not account:
            raise ValueError("No account address given and no wallet configured")
        return to_checksum_address(account)

    async def get_address(self) -> str:
        return (await self.handle()).address

    async def get_asset_address(self) -> str:
        handle = await self.handle()
        if handle.asset_contract is None:
            raise ValueError(f"Pool asset is {handle.asset}, not an ERC20 token")
        return handle.asset_contract.address

    async def get_token_value(self, block_identifier: BlockIdentifier = "latest") -> str:
        """Value of one whole (1e18 base units) pool token in deposit-asset base units.

        An empty pool prices one pool token at one whole deposit asset.
        """
        handle = await self.handle()
        self.logger.debug(f"Getting {handle.name} token value")
        fns = handle.contract.functions
        total_supply, total_value = await asyncio.gather(
            fns.totalSupply().call(block_identifier=block_identifier),
            fns.totalValue().call(block_identifier=block_identifier),
        )
        if int(total_supply) > 0:
            value = int(total_value) * MANTISSA // int(total_supply)
        else:
            value = 10**handle.asset_decimals
        self.logger.debug(
            f"{handle.name} token value is "
            f"{from_base_units(value, handle.asset_decimals)} {handle.asset}"
        )
        return str(value)

    async def get_total_supply(self, block_identifier: BlockIdentifier = "latest") -> str:
        handle = await self.handle()
        total_supply = await handle.contract.functions.totalSupply().call(
            block_identifier=block_identifier
        )
        self.logger.debug(f"{handle.name} total supply is {from_base_units(total_supply)}")
        return str(total_supply)

    async def get_balance(
        self, address: str | None = None, block_identifier: BlockIdentifier = "latest"
    ) -> str:
        account = self._account(address)
        handle = await self.handle()
        balance = await handle.contract.functions.balanceOf(account).call(
            block_identifier=block_identifier
        )
        self.logger.debug(f"Balance of {account} is {from_base_units(balance)} {handle.name}")
        return str(balance)

    async def get_asset_balance(
        self, address: str | None = None, block_identifier: BlockIdentifier = "latest"
    ) -> str:
        account = self._account(address)
        handle = await self.handle()
        if handle.is_native:
            balance = await self.web3.eth.get_balance(
                account, block_identifier=block_identifier
            )
        else:
            balance = await handle.asset_contract.functions.balanceOf(account).call(
                block_identifier=block_identifier
            )
        self.logger.debug(
            f"Balance of {account} is "
            f"{from_base_units(balance, handle.asset_decimals)} {handle.asset}"
        )
        return str(balance)

    async def get_deposited_balance(
        self, address: str | None = None, block_identifier: BlockIdentifier = "latest"
    ) -> str:
        """Pool token balance expressed in deposit-asset base units."""
        balance, token_value = await asyncio.gather(
            self.get_balance(address, block_identifier),
            self.get_token_value(block_identifier),
        )
        return str(int(balance) * int(token_value) // MANTISSA)

    async def get_withdraw_fee(self, block_identifier: BlockIdentifier = "latest") -> float:
        handle = await self.handle()
        fee = await handle.contract.functions.withdrawFee().call(
            block_identifier=block_identifier
        )
        value = float(from_base_units(fee, POOL_TOKEN_DECIMALS))
        self.logger.debug(f"{handle.name} withdraw fee is {value * 100}%")
        return value

    async def get_interest_fee(self, block_identifier: BlockIdentifier = "latest") -> float:
        resolved, handle = await self._contracts()
        fee = await handle.shape.interest_fee(
            handle.contract, resolved.controller, block_identifier
        )
        value = float(from_base_units(fee, POOL_TOKEN_DECIMALS))
        self.logger.debug(f"{handle.name} interest fee is {value * 100}%")
        return value

    async def is_address_whitelisted(
        self, address: str, block_identifier: BlockIdentifier = "latest"
    ) -> bool:
        handle = await self.handle()
        return bool(
            await handle.contract.functions.isAddressWhitelisted(
                to_checksum_address(address)
            ).call(block_identifier=block_identifier)
        )

    # Strategy

    async def get_strategy_address(
        self, block_identifier: BlockIdentifier = "latest"
    ) -> str:
        resolved, handle = await self._contracts()
        address = await handle.shape.strategy_address(
            handle.contract, resolved.controller, block_identifier
        )
        self.logger.debug(f"{handle.name} strategy contract address is {address}")
        return address

    def get_strategy_contract(self, address: str) -> Any:
        if not address or address == ZERO_ADDRESS:
            raise NoStrategyFound("No strategy contract found")
        return self.web3.eth.contract(address=to_checksum_address(address), abi=STRATEGY_ABI)

    async def _strategy(self, block_identifier: BlockIdentifier = "latest") -> Any:
        return self.get_strategy_contract(await self.get_strategy_address(block_identifier))

    async def get_strategy_vault_info(
        self, block_identifier: BlockIdentifier = "latest"
    ) -> dict[str, Any]:
        """Maker vault figures of the pool strategy; raises for non-Maker strategies."""
        resolved, handle = await self._contracts()
        strategy = await self._strategy(block_identifier)
        fns = strategy.functions
        high_water, low_water, is_underwater, vault_num = await asyncio.gather(
            fns.highWater().call(block_identifier=block_identifier),
            fns.lowWater().call(block_identifier=block_identifier),
            fns.isUnderwater().call(block_identifier=block_identifier),
            fns.vaultNum().call(block_identifier=block_identifier),
        )
        self.logger.debug(f"{handle.name} strategy vault number is {vault_num}")
        if resolved.collateral_manager is None:
            raise NoStrategyFound("No collateral manager configured")
        raw = await resolved.collateral_manager.functions.getVaultInfo(vault_num).call(
            block_identifier=block_identifier
        )
        vault = dict(zip(VAULT_INFO_KEYS, raw, strict=False))
        return {
            "collateralRatio": str(vault["collateralRatio"]),
            "daiDebt": str(vault["daiDebt"]),
            "highWater": str(high_water),
            "isUnderwater": bool(is_underwater),
            "lowWater": str(low_water),
            "vaultNum": str(vault_num),
        }

    async def _strategy_interest_earned(self, block_identifier: BlockIdentifier) -> str:
        strategy = await self._strategy(block_identifier)
        return str(
            await strategy.functions.interestEarned().call(
                block_identifier=block_identifier
            )
        )

    async def _legacy_interest_earned(self, block_identifier: BlockIdentifier) -> str:
        resolved, handle = await self._contracts()
        lending_token = resolved.metadata.find_token(LEGACY_LENDING_TOKEN)
        if lending_token is None:
            raise ValueError(f"{LEGACY_LENDING_TOKEN} is not listed")
        lending = self.web3.eth.contract(address=lending_token.address, abi=ERC20_ABI)
        lending_balance, vault = await asyncio.gather(
            lending.functions.balanceOf(handle.address).call(
                block_identifier=block_identifier
            ),
            self.get_strategy_vault_info(block_identifier),
        )
        unrealized = int(lending_balance) - int(vault["daiDebt"])
        self.logger.debug(
            f"{handle.name} unrealized gains are {from_base_units(max(unrealized, 0))} DAI"
        )
        target = WRAPPED_NATIVE_SYMBOL if handle.is_native else handle.asset
        return await self.oracle.get_amount_out(
            unrealized, [LEGACY_DEBT_TOKEN, target], block_identifier
        )

    async def get_interest_earned(
        self, block_identifier: BlockIdentifier = "latest"
    ) -> str:
        """Interest earned since the last rebalance, in deposit-asset base units."""
        handle = await self.handle()
        earned = await first_successful(
            [
                ("strategy", lambda: self._strategy_interest_earned(block_identifier)),
                ("legacy vault", lambda: self._legacy_interest_earned(block_identifier)),
            ],
            default="0",
            context=f"{handle.name} interest earned",
            log=self.logger,
        )
        self.logger.debug(
            f"{handle.name} interest earned is "
            f"{from_base_units(earned, handle.asset_decimals)} {handle.asset}"
        )
        return earned

    async def can_rebalance(
        self, address: str | None = None, block_identifier: BlockIdentifier = "latest"
    ) -> bool:
        handle = await self.handle()
        tokens_here = await handle.contract.functions.tokensHere().call(
            block_identifier=block_identifier
        )
        self.logger.debug(
            f"{handle.name} pool has "
            f"{from_base_units(tokens_here, handle.asset_decimals)} {handle.asset}"
        )
        if int(tokens_here) <= 0:
            return False

        sender = address or self.wallet_address
        try:
            call = await handle.shape.rebalance_call(handle.contract, self._strategy)
            await call.estimate_gas({"from": to_checksum_address(sender)} if sender else {})
        except Exception as exc:
            self.logger.debug(f"Rebalance gas estimation failed: {exc}")
            return False
        self.logger.debug(f"{handle.name} pool can be rebalanced")
        return True

    async def get_withdraw_timelock(self, address: str | None = None) -> int:
        """Unix time (seconds) when withdrawals unlock, or 0 when unlocked."""
        handle = await self.handle()
        if handle.name not in TIMELOCKED_POOLS:
            return 0
        account = self._account(address)
        fns = handle.contract.functions
        deposit_timestamp, lock_period = await asyncio.gather(
            fns.depositTimestamp(account).call(),
            fns.lockPeriod().call(),
        )
        if not int(deposit_timestamp):
            return 0
        unlock_time = int(deposit_timestamp) + int(lock_period)
        if unlock_time > time.time():
            self.logger.debug(f"{handle.name} withdraw is locked until {unlock_time}")
            return unlock_time
        return 0

    async def get_value_locked(self, block_identifier: BlockIdentifier = "latest") -> str:
        """Total value in reference-asset (USDC) base units."""
        handle = await self.handle()
        total_value = await handle.contract.functions.totalValue().call(
            block_identifier=block_identifier
        )
        one_asset = 10**handle.asset_decimals
        if handle.asset == REFERENCE_ASSET_SYMBOL:
            rate = one_asset
        else:
            if handle.is_native:
                path = [WRAPPED_NATIVE_SYMBOL, REFERENCE_ASSET_SYMBOL]
            elif handle.asset == REWARD_TOKEN_SYMBOL:
                path = [REWARD_TOKEN_SYMBOL, WRAPPED_NATIVE_SYMBOL, REFERENCE_ASSET_SYMBOL]
            else:
                path = [handle.asset, REFERENCE_ASSET_SYMBOL]
            rate = int(await self.oracle.get_amount_out(one_asset, path, block_identifier))
        value_locked = int(total_value) * int(rate) // one_asset
        self.logger.debug(f"{handle.name} value locked is {from_base_units(value_locked, 6)} USDC")
        return str(value_locked)

    # Rewards

    async def get_pool_rewards_address(
        self, block_identifier: BlockIdentifier = "latest"
    ) -> str:
        resolved, handle = await self._contracts()
        address = await handle.shape.pool_rewards_address(
            handle.contract, resolved.controller, block_identifier
        )
        self.logger.debug(f"PoolRewards contract address of {handle.name} is {address}")
        return address

    def get_pool_rewards_contract(self, address: str) -> Any:
        if not address or address == ZERO_ADDRESS:
            raise NoRewardsContract("No rewards contract found")
        return self.web3.eth.contract(
            address=to_checksum_address(address), abi=POOL_REWARDS_ABI
        )

    async def _pool_rewards(self, block_identifier: BlockIdentifier = "latest") -> Any:
        return self.get_pool_rewards_contract(
            await self.get_pool_rewards_address(block_identifier)
        )

    async def _matching_reward(
        self, read: str, *args: Any, block_identifier: BlockIdentifier
    ) -> str:
        rewards = await self._pool_rewards(block_identifier)
        fns = rewards.functions
        amount, token = await asyncio.gather(
            getattr(fns, read)(*args).call(block_identifier=block_identifier),
            fns.rewardToken().call(block_identifier=block_identifier),
        )
        vsp_address = await self.oracle.get_vsp_address()
        return str(amount) if _same_address(token, vsp_address) else "0"

    async def get_claimable_rewards(
        self, address: str | None = None, block_identifier: BlockIdentifier = "latest"
    ) -> str:
        account = self._account(address)
        claimable = await first_successful(
            [
                (
                    "pool rewards",
                    lambda: self._matching_reward(
                        "claimable", account, block_identifier=block_identifier
                    ),
                )
            ],
            default="0",
            context=f"{self.key} claimable rewards",
            log=self.logger,
        )
        self.logger.debug(
            f"Claimable rewards of {account} in {self.key} is {from_base_units(claimable)} VSP"
        )
        return claimable

    async def get_rewards_rate(self, block_identifier: BlockIdentifier = "latest") -> str:
        """Reward emission in VSP base units per second."""
        rate = await first_successful(
            [
                (
                    "pool rewards",
                    lambda: self._matching_reward(
                        "rewardRate", block_identifier=block_identifier
                    ),
                )
            ],
            default="0",
            context=f"{self.key} rewards rate",
            log=self.logger,
        )
        self.logger.debug(f"{self.key} rewards rate is {from_base_units(rate)} VSP/s")
        return rate

    async def has_rewards(self, block_identifier: BlockIdentifier = "latest") -> bool:
        handle = await self.handle()
        if handle.meta.vsp_rewards:
            return True
        address = await self.get_pool_rewards_address(block_identifier)
        if not address or address == ZERO_ADDRESS:
            return False
        token = await self.get_pool_rewards_contract(address).functions.rewardToken().call(
            block_identifier=block_identifier
        )
        return _same_address(token, await self.oracle.get_vsp_address())
