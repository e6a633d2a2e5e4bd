from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from loguru import logger

from vesper_sdk.adapters.vesper_adapter.reads import PoolReader


async def _pool_position(reader: PoolReader, address: str) -> tuple[str, dict[str, Any]]:
    handle = await reader.handle()
    assets, claimable, timelock, tokens = await asyncio.gather(
        reader.get_deposited_balance(address),
        reader.get_claimable_rewards(address),
        reader.get_withdraw_timelock(address),
        reader.get_balance(address),
    )
    return handle.name, {
        "assets": assets,
        "claimable_rewards": claimable,
        "timelock": timelock,
        "tokens": tokens,
    }


async def get_portfolio(
    readers: Sequence[PoolReader], address: str
) -> dict[str, dict[str, Any]]:
    """Per pool name: deposited assets, claimable VSP, timelock and pool tokens."""
    logger.debug(f"Getting portfolio of {address}")
    positions = await asyncio.gather(*(_pool_position(r, address) for r in readers))
    portfolio = dict(positions)
    logger.debug(f"Got portfolio balances of {', '.join(portfolio)}")
    return portfolio


async def _asset_balance(reader: PoolReader, address: str) -> tuple[str, str]:
    handle = await reader.handle()
    return handle.asset, await reader.get_asset_balance(address)


async def get_asset_portfolio(
    readers: Sequence[PoolReader], address: str
) -> dict[str, str]:
    """Balance of each deposit asset, keyed by symbol."""
    logger.debug(f"Getting asset portfolio of {address}")
    balances = await asyncio.gather(*(_asset_balance(r, address) for r in readers))
    portfolio = dict(balances)
    logger.debug(f"Got asset portfolio balances of {', '.join(portfolio)}")
    return portfolio
