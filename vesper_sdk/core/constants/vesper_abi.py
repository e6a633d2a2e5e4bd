from __future__ import annotations

from vesper_sdk.core.constants.erc20_abi import ERC20_ABI

# Pool tokens are ERC-20 with EIP-2612 permit support.
_POOL_COMMON_ABI = [
    *ERC20_ABI,
    {
        "type": "function",
        "stateMutability": "view",
        "name": "totalValue",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "tokensHere",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "withdrawFee",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "paused",
        "inputs": [],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "stopEverything",
        "inputs": [],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "nonces",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "isAddressWhitelisted",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "depositTimestamp",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "lockPeriod",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "withdraw",
        "inputs": [{"name": "shares", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "withdrawETH",
        "inputs": [{"name": "shares", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "event",
        "anonymous": False,
        "name": "Deposit",
        "inputs": [
            {"indexed": True, "name": "owner", "type": "address"},
            {"indexed": False, "name": "shares", "type": "uint256"},
            {"indexed": False, "name": "amount", "type": "uint256"},
        ],
    },
    {
        "type": "event",
        "anonymous": False,
        "name": "Withdraw",
        "inputs": [
            {"indexed": True, "name": "owner", "type": "address"},
            {"indexed": False, "name": "shares", "type": "uint256"},
            {"indexed": False, "name": "amount", "type": "uint256"},
        ],
    },
]

POOL_V1_ABI = [
    *_POOL_COMMON_ABI,
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "deposit",
        "inputs": [{"name": "amount", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "stateMutability": "payable",
        "name": "deposit",
        "inputs": [],
        "outputs": [],
    },
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "rebalance",
        "inputs": [],
        "outputs": [],
    },
]

POOL_V3_ABI = [
    *_POOL_COMMON_ABI,
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "deposit",
        "inputs": [{"name": "amount", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "stateMutability": "payable",
        "name": "depositETH",
        "inputs": [],
        "outputs": [],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "poolRewards",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "getStrategies",
        "inputs": [],
        "outputs": [{"name": "", "type": "address[]"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "strategy",
        "inputs": [{"name": "strategy", "type": "address"}],
        "outputs": [
            {"name": "active", "type": "bool"},
            {"name": "interestFee", "type": "uint256"},
            {"name": "debtRate", "type": "uint256"},
            {"name": "lastRebalance", "type": "uint256"},
            {"name": "totalDebt", "type": "uint256"},
            {"name": "totalLoss", "type": "uint256"},
            {"name": "totalProfit", "type": "uint256"},
            {"name": "debtRatio", "type": "uint256"},
        ],
    },
]

CONTROLLER_ABI = [
    {
        "type": "function",
        "stateMutability": "view",
        "name": "strategy",
        "inputs": [{"name": "pool", "type": "address"}],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "poolRewards",
        "inputs": [{"name": "pool", "type": "address"}],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "interestFee",
        "inputs": [{"name": "pool", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

COLLATERAL_MANAGER_ABI = [
    {
        "type": "function",
        "stateMutability": "view",
        "name": "getVaultInfo",
        "inputs": [{"name": "vaultNum", "type": "uint256"}],
        "outputs": [
            {"name": "collateralLocked", "type": "uint256"},
            {"name": "daiDebt", "type": "uint256"},
            {"name": "collateralUsdRate", "type": "uint256"},
            {"name": "collateralRatio", "type": "uint256"},
            {"name": "minimumDebt", "type": "uint256"},
        ],
    },
]

# Keys of the getVaultInfo tuple, in order.
VAULT_INFO_KEYS = [
    "collateralLocked",
    "daiDebt",
    "collateralUsdRate",
    "collateralRatio",
    "minimumDebt",
]

STRATEGY_ABI = [
    {
        "type": "function",
        "stateMutability": "view",
        "name": "interestEarned",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "highWater",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "lowWater",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "isUnderwater",
        "inputs": [],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "vaultNum",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "rebalance",
        "inputs": [],
        "outputs": [],
    },
]

POOL_REWARDS_ABI = [
    {
        "type": "function",
        "stateMutability": "view",
        "name": "claimable",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "rewardToken",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "rewardRate",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "claimReward",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [],
    },
    {
        "type": "event",
        "anonymous": False,
        "name": "RewardPaid",
        "inputs": [
            {"indexed": True, "name": "user", "type": "address"},
            {"indexed": False, "name": "reward", "type": "uint256"},
        ],
    },
]

MIGRATOR_ABI = [
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "migrate",
        "inputs": [
            {"name": "poolFrom", "type": "address"},
            {"name": "poolTo", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "migrateWithPermit",
        "inputs": [
            {"name": "poolFrom", "type": "address"},
            {"name": "poolTo", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "deadline", "type": "uint256"},
            {"name": "v", "type": "uint8"},
            {"name": "r", "type": "bytes32"},
            {"name": "s", "type": "bytes32"},
        ],
        "outputs": [],
    },
]
