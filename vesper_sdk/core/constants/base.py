ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2**256 - 1

# Pool tokens are 18-decimal fixed point regardless of the deposit asset.
POOL_TOKEN_DECIMALS = 18
MANTISSA = 10**18

NATIVE_ASSET_SYMBOL = "ETH"
NATIVE_ASSET_DECIMALS = 18
REFERENCE_ASSET_SYMBOL = "USDC"
WRAPPED_NATIVE_SYMBOL = "WETH"
REWARD_TOKEN_SYMBOL = "VSP"

# Gas estimates are multiplied by this factor and rounded up before sending.
DEFAULT_GAS_OVERESTIMATION = 1.25
# A withdrawal within this fraction of the full pool-token balance is swept
# up to the full balance.
DEFAULT_DUST_TOLERANCE = 0.001

# Rough gas per step, used only to report the expected fee before sending.
EXPECTED_GAS = {
    "approval": 66000,
    "claim": 100000,
    "deposit": 155000,
    "migrate": 400000,
    "rebalance": 825000,
    "withdraw": 250000,
}

PERMIT_DEADLINE_SECONDS = 15 * 60
PERMIT_VERSION = "1"
TYPED_DATA_SIGN_METHOD = "eth_signTypedData_v4"

DEFAULT_STAGES = ["prod"]

# Only these pools lock withdrawals for a period after each deposit.
TIMELOCKED_POOLS = frozenset({"vVSP"})

MIGRATOR_SUPPORT_NAME = "MiniArmyKnife"

VSP_RATE_CACHE_TTL = 60
