from vesper_sdk.core.constants.base import MAX_UINT256, ZERO_ADDRESS

__all__ = ["MAX_UINT256", "ZERO_ADDRESS"]
