from typing import Any

from pydantic import BaseModel, Field


class TransactionOutcome(BaseModel):
    """Submitted transaction plus its receipt, for one executed step."""

    label: str | None = None
    transaction: dict[str, Any]
    receipt: dict[str, Any]

    @property
    def transaction_hash(self) -> str | None:
        txn_hash = self.receipt.get("transactionHash") or self.transaction.get("hash")
        if txn_hash is None:
            return None
        return txn_hash if isinstance(txn_hash, str) else "0x" + bytes(txn_hash).hex()

    @property
    def status(self) -> bool:
        return int(self.receipt.get("status") or 0) == 1

    @property
    def gas_used(self) -> int:
        return int(self.receipt.get("gasUsed") or 0)

    @property
    def gas_price(self) -> int:
        # Mined EIP-1559 transactions report the effective price on the receipt.
        price = self.transaction.get("gasPrice")
        if price is None:
            price = self.receipt.get("effectiveGasPrice")
        return int(price or 0)

    @property
    def fee(self) -> int:
        return self.gas_used * self.gas_price


class OperationResult(BaseModel):
    """Aggregate of every step executed for one write operation.

    Amounts are base-unit integers encoded as decimal strings.
    """

    sent: str = "0"
    received: str = "0"
    decimals: int = 18
    fees: str = "0"
    status: bool
    raw: list[TransactionOutcome] = Field(default_factory=list)


class PlannedTransactions(BaseModel):
    expected_fee: str
    labels: list[str]
