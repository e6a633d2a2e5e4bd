CHAIN_ID_ETHEREUM = 1
CHAIN_ID_POLYGON = 137
CHAIN_ID_AVALANCHE = 43114
CHAIN_ID_LOCAL_FORK = 1337

# Local forks (ganache and friends) report 1337 regardless of the network
# they fork from.
FORKED_CHAIN_ID_REMAP: dict[int, int] = {
    CHAIN_ID_LOCAL_FORK: CHAIN_ID_ETHEREUM,
}

POA_MIDDLEWARE_CHAIN_IDS: set[int] = {
    CHAIN_ID_POLYGON,
    CHAIN_ID_AVALANCHE,
}

UNISWAP_V2_ROUTER_BY_CHAIN: dict[int, str] = {
    CHAIN_ID_ETHEREUM: "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D",
}


def canonical_chain_id(chain_id: int) -> int:
    cid = int(chain_id)
    return FORKED_CHAIN_ID_REMAP.get(cid, cid)
