from __future__ import annotations

UNISWAP_V2_ROUTER_ABI = [
    {
        "type": "function",
        "stateMutability": "view",
        "name": "getAmountsOut",
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "path", "type": "address[]"},
        ],
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
    },
]
