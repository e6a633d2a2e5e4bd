from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from loguru import logger

from vesper_sdk.adapters.vesper_adapter.oracle import UniswapRateOracle
from vesper_sdk.adapters.vesper_adapter.reads import PoolReader
from vesper_sdk.core.constants.base import (
    MANTISSA,
    TIMELOCKED_POOLS,
    WRAPPED_NATIVE_SYMBOL,
)


def pool_status(paused: bool, stopped: bool) -> str:
    if stopped:
        return "stopped"
    if paused:
        return "paused"
    return "operative"


async def _unlocked() -> int:
    return 0


async def get_pool_info(reader: PoolReader, oracle: UniswapRateOracle) -> dict[str, Any]:
    handle = await reader.handle()
    fns = handle.contract.functions
    lock_period_call = (
        fns.lockPeriod().call() if handle.name in TIMELOCKED_POOLS else _unlocked()
    )
    (
        interest_earned,
        interest_fee,
        rewards_rate,
        token_value,
        total_supply,
        withdraw_fee,
        has_rewards,
        decimals,
        paused,
        stopped,
        total_value,
        lock_period,
        vsp_rate,
    ) = await asyncio.gather(
        reader.get_interest_earned(),
        reader.get_interest_fee(),
        reader.get_rewards_rate(),
        reader.get_token_value(),
        reader.get_total_supply(),
        reader.get_withdraw_fee(),
        reader.has_rewards(),
        fns.decimals().call(),
        fns.paused().call(),
        fns.stopEverything().call(),
        fns.totalValue().call(),
        lock_period_call,
        oracle.get_vsp_rate(WRAPPED_NATIVE_SYMBOL if handle.is_native else handle.asset),
    )
    return {
        **handle.meta.model_dump(),
        "asset": {
            "address": handle.asset_contract.address if handle.asset_contract else None,
            "decimals": handle.asset_decimals,
            "symbol": handle.asset,
        },
        "collateral_rewards_rate": str(int(rewards_rate) * int(vsp_rate) // MANTISSA),
        "decimals": int(decimals),
        "interest_earned": interest_earned,
        "interest_fee": interest_fee,
        "lock_period": int(lock_period),
        "rewards_rate": rewards_rate,
        "status": pool_status(bool(paused), bool(stopped)),
        "token_value": token_value,
        "total_supply": total_supply,
        "total_value": str(total_value),
        "vsp_rewards": has_rewards,
        "withdraw_fee": withdraw_fee,
    }


async def get_pools(
    readers: Sequence[PoolReader], oracle: UniswapRateOracle
) -> list[dict[str, Any]]:
    """General information of every pool behind ``readers``."""
    pools = await asyncio.gather(*(get_pool_info(reader, oracle) for reader in readers))
    logger.debug(
        f"Got pools information for {', '.join(pool['name'] for pool in pools)}"
    )
    return list(pools)
