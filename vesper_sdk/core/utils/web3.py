from contextlib import asynccontextmanager

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.middleware import ExtraDataToPOAMiddleware

from vesper_sdk.core.config import get_rpc_urls
from vesper_sdk.core.constants.chains import POA_MIDDLEWARE_CHAIN_IDS


def _get_rpcs_for_chain_id(chain_id: int) -> list[str]:
    mapping = get_rpc_urls()
    rpcs = mapping.get(str(chain_id))
    if rpcs is None:
        rpcs = mapping.get(chain_id)  # allow int keys
    if not rpcs:
        raise ValueError(f"No RPCs configured for chain ID {chain_id}")
    if isinstance(rpcs, str):
        return [rpcs]
    return list(rpcs)


def make_web3(rpc: str, chain_id: int | None = None) -> AsyncWeb3:
    web3 = AsyncWeb3(AsyncHTTPProvider(rpc))
    if chain_id in POA_MIDDLEWARE_CHAIN_IDS:
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return web3


def get_web3_from_chain_id(chain_id: int) -> AsyncWeb3:
    rpc = _get_rpcs_for_chain_id(chain_id)[0]
    logger.debug(f"Using RPC {rpc} for chain {chain_id}")
    return make_web3(rpc, chain_id)


@asynccontextmanager
async def web3_from_chain_id(chain_id: int):
    web3 = get_web3_from_chain_id(chain_id)
    try:
        yield web3
    finally:
        await web3.provider.disconnect()
