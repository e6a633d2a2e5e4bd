import time
from unittest.mock import AsyncMock

import pytest

from vesper_sdk.adapters.vesper_adapter.reads import PoolReader
from vesper_sdk.core.constants.base import ZERO_ADDRESS
from vesper_sdk.core.errors import NoStrategyFound
from vesper_sdk.testing.fakes import (
    ADAI,
    COLLATERAL_MANAGER,
    CONTROLLER,
    POOL_REWARDS,
    ROUTER,
    STRATEGY,
    USDC,
    VDAI,
    VETH,
    VSP,
    VUSDC,
    VVSP,
    WALLET,
    call_raising,
    call_returning,
    invocation,
)


@pytest.fixture
def make_reader(registry, oracle):
    def _make(pool):
        return PoolReader(registry, pool, oracle, wallet_address=WALLET)

    return _make


def with_rewards(chain, pool_address, token=VSP, claimable=0, rate=0):
    chain.contract(pool_address).functions.poolRewards.return_value = call_returning(
        POOL_REWARDS
    )
    rewards = chain.contract(POOL_REWARDS).functions
    rewards.rewardToken.return_value = call_returning(token)
    rewards.claimable.return_value = call_returning(claimable)
    rewards.rewardRate.return_value = call_returning(rate)


@pytest.mark.asyncio
class TestTokenValue:
    async def test_empty_pool_is_one_asset_unit(self, chain, make_reader):
        pool = chain.contract(VUSDC).functions
        pool.totalSupply.return_value = call_returning(0)
        pool.totalValue.return_value = call_returning(0)
        assert await make_reader("vUSDC").get_token_value() == "1000000"

    async def test_value_over_supply(self, chain, make_reader):
        pool = chain.contract(VUSDC).functions
        pool.totalSupply.return_value = call_returning(4 * 10**18)
        pool.totalValue.return_value = call_returning(5_000_000)
        # 1.25 USDC per whole pool token
        assert await make_reader("vUSDC").get_token_value() == "1250000"

    async def test_deposited_balance(self, chain, make_reader):
        pool = chain.contract(VDAI).functions
        pool.totalSupply.return_value = call_returning(10 * 10**18)
        pool.totalValue.return_value = call_returning(11 * 10**18)
        pool.balanceOf.return_value = call_returning(2 * 10**18)
        reader = make_reader("vDAI")
        assert await reader.get_deposited_balance() == str(22 * 10**17)
        pool.balanceOf.assert_called_with(WALLET)

    async def test_block_identifier_forwarded(self, chain, make_reader):
        pool = chain.contract(VDAI).functions
        pool.totalSupply.return_value = call_returning(10)
        await make_reader("vDAI").get_total_supply(block_identifier=123)
        pool.totalSupply.return_value.call.assert_awaited_once_with(block_identifier=123)


@pytest.mark.asyncio
class TestBalances:
    async def test_native_asset_balance(self, chain, make_reader):
        chain.web3.eth.get_balance = AsyncMock(return_value=3 * 10**18)
        assert await make_reader("vETH").get_asset_balance() == str(3 * 10**18)

    async def test_token_asset_balance(self, chain, make_reader):
        chain.contract(USDC).functions.balanceOf.return_value = call_returning(42)
        assert await make_reader("vUSDC").get_asset_balance(WALLET) == "42"

    async def test_native_pool_has_no_asset_address(self, make_reader):
        assert await make_reader("vUSDC").get_asset_address() == USDC
        with pytest.raises(ValueError, match="not an ERC20"):
            await make_reader("vETH").get_asset_address()

    async def test_requires_an_account(self, registry, oracle):
        reader = PoolReader(registry, "vDAI", oracle)
        with pytest.raises(ValueError, match="No account"):
            await reader.get_balance()


@pytest.mark.asyncio
class TestFees:
    async def test_withdraw_fee(self, chain, make_reader):
        chain.contract(VDAI).functions.withdrawFee.return_value = call_returning(6 * 10**15)
        assert await make_reader("vDAI").get_withdraw_fee() == 0.006

    async def test_v1_interest_fee_from_controller(self, chain, make_reader):
        controller = chain.contract(CONTROLLER).functions
        controller.interestFee.return_value = call_returning(15 * 10**16)
        assert await make_reader("vDAI").get_interest_fee() == 0.15
        controller.interestFee.assert_called_once_with(VDAI)

    async def test_v3_interest_fee_from_strategy_config(self, chain, make_reader):
        pool = chain.contract(VUSDC).functions
        pool.getStrategies.return_value = call_returning([STRATEGY])
        pool.strategy.return_value = call_returning((True, 2 * 10**17, 0, 0, 0, 0, 0, 0))
        assert await make_reader("vUSDC").get_interest_fee() == 0.2
        pool.strategy.assert_called_once_with(STRATEGY)


@pytest.mark.asyncio
class TestStrategy:
    async def test_zero_strategy(self, chain, make_reader):
        chain.contract(CONTROLLER).functions.strategy.return_value = call_returning(
            ZERO_ADDRESS
        )
        reader = make_reader("vDAI")
        with pytest.raises(NoStrategyFound):
            reader.get_strategy_contract(await reader.get_strategy_address())

    async def test_v3_without_strategies(self, chain, make_reader):
        chain.contract(VUSDC).functions.getStrategies.return_value = call_returning([])
        assert await make_reader("vUSDC").get_strategy_address() == ZERO_ADDRESS

    async def test_vault_info(self, chain, make_reader):
        chain.contract(CONTROLLER).functions.strategy.return_value = call_returning(STRATEGY)
        strategy = chain.contract(STRATEGY).functions
        strategy.highWater.return_value = call_returning(3 * 10**18)
        strategy.lowWater.return_value = call_returning(2 * 10**18)
        strategy.isUnderwater.return_value = call_returning(False)
        strategy.vaultNum.return_value = call_returning(77)
        chain.contract(COLLATERAL_MANAGER).functions.getVaultInfo.return_value = (
            call_returning((10, 400, 1, 25 * 10**17, 0))
        )
        info = await make_reader("vETH").get_strategy_vault_info()
        assert info == {
            "collateralRatio": str(25 * 10**17),
            "daiDebt": "400",
            "highWater": str(3 * 10**18),
            "isUnderwater": False,
            "lowWater": str(2 * 10**18),
            "vaultNum": "77",
        }


@pytest.mark.asyncio
class TestInterestEarned:
    async def test_from_strategy(self, chain, make_reader):
        chain.contract(CONTROLLER).functions.strategy.return_value = call_returning(STRATEGY)
        chain.contract(STRATEGY).functions.interestEarned.return_value = call_returning(123)
        assert await make_reader("vDAI").get_interest_earned() == "123"

    async def test_zero_is_a_valid_answer(self, chain, make_reader):
        chain.contract(CONTROLLER).functions.strategy.return_value = call_returning(STRATEGY)
        strategy = chain.contract(STRATEGY).functions
        strategy.interestEarned.return_value = call_returning(0)
        assert await make_reader("vDAI").get_interest_earned() == "0"
        strategy.vaultNum.assert_not_called()

    async def test_falls_back_to_legacy_vault(self, chain, make_reader):
        chain.contract(CONTROLLER).functions.strategy.return_value = call_returning(STRATEGY)
        strategy = chain.contract(STRATEGY).functions
        strategy.interestEarned.return_value = call_raising(ValueError("no method"))
        strategy.highWater.return_value = call_returning(0)
        strategy.lowWater.return_value = call_returning(0)
        strategy.isUnderwater.return_value = call_returning(False)
        strategy.vaultNum.return_value = call_returning(7)
        chain.contract(COLLATERAL_MANAGER).functions.getVaultInfo.return_value = (
            call_returning((0, 400, 0, 0, 0))
        )
        chain.contract(ADAI).functions.balanceOf.return_value = call_returning(1000)
        router = chain.contract(ROUTER).functions
        router.getAmountsOut.return_value = call_returning([600, 3])

        assert await make_reader("vETH").get_interest_earned() == "3"
        assert router.getAmountsOut.call_args.args[0] == 600
        chain.contract(ADAI).functions.balanceOf.assert_called_once_with(VETH)

    async def test_every_path_failing_is_zero(self, chain, make_reader):
        chain.contract(CONTROLLER).functions.strategy.return_value = call_raising(
            ValueError("execution reverted")
        )
        chain.contract(ADAI).functions.balanceOf.return_value = call_returning(0)
        assert await make_reader("vDAI").get_interest_earned() == "0"


@pytest.mark.asyncio
class TestCanRebalance:
    async def test_nothing_to_invest(self, chain, make_reader):
        pool = chain.contract(VDAI).functions
        pool.tokensHere.return_value = call_returning(0)
        assert await make_reader("vDAI").can_rebalance() is False
        pool.rebalance.assert_not_called()

    async def test_estimation_succeeds(self, chain, make_reader):
        pool = chain.contract(VDAI).functions
        pool.tokensHere.return_value = call_returning(10**18)
        pool.rebalance.return_value = invocation()
        assert await make_reader("vDAI").can_rebalance() is True
        pool.rebalance.return_value.estimate_gas.assert_awaited_once_with({"from": WALLET})

    async def test_estimation_failure_is_false(self, chain, make_reader):
        chain.contract(VUSDC).functions.tokensHere.return_value = call_returning(10**6)
        chain.contract(VUSDC).functions.getStrategies.return_value = call_returning(
            [STRATEGY]
        )
        rebalance = invocation()
        rebalance.estimate_gas.side_effect = ValueError("execution reverted")
        chain.contract(STRATEGY).functions.rebalance.return_value = rebalance
        assert await make_reader("vUSDC").can_rebalance() is False


@pytest.mark.asyncio
class TestRewards:
    async def test_claimable(self, chain, make_reader):
        with_rewards(chain, VUSDC, claimable=500)
        assert await make_reader("vUSDC").get_claimable_rewards() == "500"

    async def test_claimable_other_token_is_zero(self, chain, make_reader):
        with_rewards(chain, VUSDC, token=USDC, claimable=500)
        assert await make_reader("vUSDC").get_claimable_rewards() == "0"

    async def test_claimable_without_rewards_contract(self, chain, make_reader):
        chain.contract(VUSDC).functions.poolRewards.return_value = call_returning(
            ZERO_ADDRESS
        )
        assert await make_reader("vUSDC").get_claimable_rewards() == "0"

    async def test_claimable_call_failure(self, chain, make_reader):
        chain.contract(CONTROLLER).functions.poolRewards.return_value = call_raising(
            ValueError("timeout")
        )
        assert await make_reader("vDAI").get_claimable_rewards() == "0"

    async def test_rewards_rate(self, chain, make_reader):
        with_rewards(chain, VUSDC, rate=10**15)
        reader = make_reader("vUSDC")
        assert await reader.get_rewards_rate() == str(10**15)
        assert await reader.has_rewards() is True

    async def test_rewards_rate_other_token(self, chain, make_reader):
        with_rewards(chain, VUSDC, token=USDC, rate=10**15)
        reader = make_reader("vUSDC")
        assert await reader.get_rewards_rate() == "0"
        assert await reader.has_rewards() is False

    async def test_no_rewards_contract(self, chain, make_reader):
        chain.contract(CONTROLLER).functions.poolRewards.return_value = call_returning(
            ZERO_ADDRESS
        )
        assert await make_reader("vDAI").has_rewards() is False


@pytest.mark.asyncio
class TestWithdrawTimelock:
    async def test_other_pools_are_unlocked_without_calls(self, chain, make_reader):
        assert await make_reader("vDAI").get_withdraw_timelock() == 0
        chain.contract(VDAI).functions.depositTimestamp.assert_not_called()

    async def test_locked(self, chain, make_reader):
        deposited = int(time.time()) - 10
        pool = chain.contract(VVSP).functions
        pool.depositTimestamp.return_value = call_returning(deposited)
        pool.lockPeriod.return_value = call_returning(3600)
        assert await make_reader("vVSP").get_withdraw_timelock() == deposited + 3600

    async def test_expired(self, chain, make_reader):
        pool = chain.contract(VVSP).functions
        pool.depositTimestamp.return_value = call_returning(int(time.time()) - 7200)
        pool.lockPeriod.return_value = call_returning(3600)
        assert await make_reader("vVSP").get_withdraw_timelock() == 0

    async def test_never_deposited(self, chain, make_reader):
        pool = chain.contract(VVSP).functions
        pool.depositTimestamp.return_value = call_returning(0)
        pool.lockPeriod.return_value = call_returning(3600)
        assert await make_reader("vVSP").get_withdraw_timelock(WALLET) == 0


@pytest.mark.asyncio
class TestValueLocked:
    async def test_reference_asset_needs_no_rate(self, chain, make_reader):
        chain.contract(VUSDC).functions.totalValue.return_value = call_returning(5_000_000)
        assert await make_reader("vUSDC").get_value_locked() == "5000000"
        chain.contract(ROUTER).functions.getAmountsOut.assert_not_called()

    async def test_native_asset_priced_through_weth(self, chain, make_reader):
        chain.contract(VETH).functions.totalValue.return_value = call_returning(2 * 10**18)
        router = chain.contract(ROUTER).functions
        router.getAmountsOut.return_value = call_returning([10**18, 3000 * 10**6])
        assert await make_reader("vETH").get_value_locked() == str(6000 * 10**6)
        assert router.getAmountsOut.call_args.args[1][-1] == USDC

    async def test_vsp_priced_through_weth(self, chain, make_reader):
        chain.contract(VVSP).functions.totalValue.return_value = call_returning(10**18)
        router = chain.contract(ROUTER).functions
        router.getAmountsOut.return_value = call_returning([10**18, 1, 2_500_000])
        assert await make_reader("vVSP").get_value_locked() == "2500000"
        assert len(router.getAmountsOut.call_args.args[1]) == 3


@pytest.mark.asyncio
class TestWhitelist:
    async def test_is_address_whitelisted(self, chain, make_reader):
        chain.contract(VDAI).functions.isAddressWhitelisted.return_value = call_returning(True)
        assert await make_reader("vDAI").is_address_whitelisted(WALLET) is True
