"""Error taxonomy shared by the Vesper client.

Write-path errors always reach the caller. Read-path helpers that are purely
informational catch these at each fallback layer and degrade to a default.
"""


class VesperError(Exception):
    """Base exception for the Vesper client."""


class InvalidAmount(VesperError, ValueError):
    """Raised when a numeric amount cannot be parsed or is negative."""

    def __init__(self, amount: object, reason: str | None = None):
        self.amount = amount
        super().__init__(f"Invalid amount {amount!r}" + (f": {reason}" if reason else ""))


class EstimationFailed(VesperError):
    """Raised when gas estimation for a required step fails."""

    def __init__(self, label: str, cause: Exception | None = None):
        self.label = label
        message = f"Gas estimation failed for {label}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class NoStrategyFound(VesperError):
    pass


class NoRewardsContract(VesperError):
    pass


class NoSigningCapability(VesperError):
    """The signer cannot produce typed-data signatures. Not retryable."""


class UnsupportedNetwork(VesperError):
    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        super().__init__(f"No pool contracts on chain {chain_id}")


class NoPoolValue(VesperError):
    """Raised when a pool with outstanding supply reports zero total value."""
