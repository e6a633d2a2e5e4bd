import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from hexbytes import HexBytes
from loguru import logger
from web3 import AsyncWeb3
from web3.logs import DISCARD

from vesper_sdk.core.adapters.BaseAdapter import SignCallback
from vesper_sdk.core.adapters.models import (
    OperationResult,
    PlannedTransactions,
    TransactionOutcome,
)
from vesper_sdk.core.constants.base import DEFAULT_GAS_OVERESTIMATION
from vesper_sdk.core.errors import EstimationFailed, NoSigningCapability
from vesper_sdk.core.utils.events import EventKind, OperationEvents, OperationState
from vesper_sdk.core.utils.units import from_base_units


class TransactionRevertedError(RuntimeError):
    def __init__(
        self,
        txn_hash: str,
        receipt: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        self.txn_hash = txn_hash
        self.receipt = receipt or {}
        super().__init__(message or f"Transaction reverted: {txn_hash}")


def _raise_revert_error(
    txn_hash: str, receipt: dict[str, Any], transaction: dict[str, Any]
) -> None:
    gas_used = int(receipt.get("gasUsed") or 0)
    gas_limit = int(transaction.get("gas") or 0)
    oogs = bool(gas_used and gas_limit and gas_used >= gas_limit)
    suffix = (
        f" gasUsed={gas_used} gasLimit={gas_limit}"
        + (" (likely out of gas)" if oogs else "")
        if gas_used or gas_limit
        else ""
    )
    raise TransactionRevertedError(
        txn_hash,
        receipt,
        message=f"Transaction reverted (status=0): {txn_hash}{suffix}",
    )


def _to_hex_hash(txn_hash: Any) -> str:
    if isinstance(txn_hash, str):
        return txn_hash if txn_hash.startswith("0x") else f"0x{txn_hash}"
    hex_str = HexBytes(txn_hash).hex()
    return hex_str if hex_str.startswith("0x") else f"0x{hex_str}"


@dataclass
class TransactionStep:
    """One transaction of a write operation.

    ``invocation`` is anything with async ``estimate_gas(tx)`` and
    ``build_transaction(tx)``: a web3 contract function call or a
    ``PermitCall``.
    """

    invocation: Any
    label: str
    expected_gas: int = 0
    value: int = 0
    gas: int | None = None


def calculate_fee(outcome: TransactionOutcome) -> str:
    return str(outcome.fee)


def calculate_total_fee(outcomes: Sequence[TransactionOutcome]) -> str:
    return str(sum(outcome.fee for outcome in outcomes))


def plan_fee(gas_price: int, steps: Sequence[TransactionStep]) -> str:
    return str(int(gas_price) * sum(int(step.expected_gas) for step in steps))


def build_operation_result(
    outcomes: Sequence[TransactionOutcome],
    *,
    sent: str = "0",
    received: str | None = None,
    decimals: int = 18,
) -> OperationResult:
    return OperationResult(
        sent=str(sent),
        received=received or "0",
        decimals=int(decimals),
        fees=calculate_total_fee(outcomes),
        status=bool(outcomes) and all(outcome.status for outcome in outcomes),
        raw=list(outcomes),
    )


def find_return_value(
    receipt: dict[str, Any], contract: Any, event_name: str, field: str
) -> str | None:
    """Return ``field`` of the first ``event_name`` log emitted by ``contract``."""
    event = getattr(contract.events, event_name)()
    address = str(contract.address).lower()
    for log in event.process_receipt(receipt, errors=DISCARD):
        if str(log["address"]).lower() == address:
            return str(log["args"][field])
    return None


class TransactionSequencer:
    """Executes transaction steps strictly in order, one receipt at a time.

    Gas for a step is estimated only after the previous step is mined, so a
    deposit is estimated against the allowance its approval just granted.
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        *,
        events: OperationEvents | None = None,
        overestimation: float = DEFAULT_GAS_OVERESTIMATION,
        sign_callback: SignCallback | None = None,
        receipt_timeout: float | None = None,
    ):
        self.web3 = web3
        self.events = events or OperationEvents()
        self.overestimation = float(overestimation)
        self.sign_callback = sign_callback
        self.receipt_timeout = receipt_timeout

    async def plan(self, steps: Sequence[TransactionStep]) -> PlannedTransactions:
        gas_price = await self.web3.eth.gas_price
        planned = PlannedTransactions(
            expected_fee=plan_fee(gas_price, steps),
            labels=[step.label for step in steps],
        )
        logger.debug(
            f"Expected fee in {len(steps)} transaction(s) is "
            f"{from_base_units(planned.expected_fee)} ETH"
        )
        self.events.emit(EventKind.PLANNED, data=planned)
        return planned

    async def estimate_gas(self, step: TransactionStep, tx_params: dict[str, Any]) -> int:
        self.events.transition(OperationState.ESTIMATING, step.label)
        explicit = step.gas or tx_params.get("gas")
        if explicit:
            return int(explicit)

        params = {k: v for k, v in tx_params.items() if k not in ("gas", "nonce")}
        if step.value:
            params["value"] = int(step.value)
        logger.debug(f"Estimating gas for {step.label}")
        try:
            gas = await step.invocation.estimate_gas(params)
        except NoSigningCapability:
            raise
        except Exception as exc:
            logger.warning(f"Gas estimation failed for {step.label}: {exc}")
            raise EstimationFailed(step.label, exc) from exc

        buffered = int(math.ceil(int(gas) * self.overestimation))
        logger.debug(
            f"Gas needed for {step.label} is {gas} (x{self.overestimation:.2f})"
        )
        self.events.emit(EventKind.GAS_ESTIMATED, step.label, buffered)
        return buffered

    async def _broadcast(self, step: TransactionStep, params: dict[str, Any]) -> str:
        if self.sign_callback is None:
            transaction = await step.invocation.build_transaction(params)
            return _to_hex_hash(await self.web3.eth.send_transaction(transaction))

        if "nonce" not in params:
            params["nonce"] = await self.web3.eth.get_transaction_count(
                params["from"], "pending"
            )
        transaction = await step.invocation.build_transaction(params)
        signed = await self.sign_callback(transaction)
        return _to_hex_hash(await self.web3.eth.send_raw_transaction(signed))

    async def send_step(
        self,
        step: TransactionStep,
        tx_params: dict[str, Any],
        gas: int,
        nonce: int | None = None,
    ) -> TransactionOutcome:
        self.events.transition(OperationState.SENDING, step.label)
        params = {**tx_params, "gas": int(gas)}
        if step.value:
            params["value"] = int(step.value)
        if nonce is not None:
            params["nonce"] = int(nonce)

        logger.info(f"Sending {step.label} transaction from {params.get('from')}")
        txn_hash = await self._broadcast(step, params)
        logger.info(f"Transaction {step.label} broadcast: {txn_hash}")
        self.events.emit(EventKind.TRANSACTION_HASH, step.label, txn_hash)

        self.events.transition(OperationState.CONFIRMING, step.label)
        if self.receipt_timeout is None:
            receipt = await self.web3.eth.wait_for_transaction_receipt(txn_hash)
        else:
            receipt = await self.web3.eth.wait_for_transaction_receipt(
                txn_hash, timeout=self.receipt_timeout
            )
        transaction = await self.web3.eth.get_transaction(txn_hash)
        outcome = TransactionOutcome(
            label=step.label, transaction=dict(transaction), receipt=dict(receipt)
        )
        logger.info(
            f"Transaction {step.label} {'mined' if outcome.status else 'failed'}: {txn_hash}"
        )
        self.events.emit(EventKind.RECEIPT, step.label, outcome)
        if not outcome.status:
            _raise_revert_error(txn_hash, outcome.receipt, outcome.transaction)
        return outcome

    async def execute(
        self,
        steps: Sequence[TransactionStep],
        tx_params: dict[str, Any],
        *,
        base_nonce: int | None = None,
    ) -> list[TransactionOutcome]:
        """Run every step in declared order.

        With ``base_nonce`` step ``i`` is sent with nonce ``base_nonce + i``.
        A failure stops the remaining steps; mined steps stay mined.
        """
        logger.info(
            f"Sending {len(steps)} transaction(s): "
            + ", ".join(step.label for step in steps)
        )
        outcomes: list[TransactionOutcome] = []
        for index, step in enumerate(steps):
            gas = await self.estimate_gas(step, tx_params)
            nonce = base_nonce + index if base_nonce is not None else None
            outcomes.append(await self.send_step(step, tx_params, gas, nonce))
        return outcomes

    def complete(
        self,
        outcomes: Sequence[TransactionOutcome],
        *,
        sent: str = "0",
        received: str | None = None,
        decimals: int = 18,
    ) -> OperationResult:
        result = build_operation_result(
            outcomes, sent=sent, received=received, decimals=decimals
        )
        logger.debug(f"Total transaction fees paid {from_base_units(result.fees)} ETH")
        self.events.transition(OperationState.COMPLETED)
        self.events.emit(EventKind.COMPLETED, data=result)
        return result
