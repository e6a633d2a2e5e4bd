from unittest.mock import AsyncMock, MagicMock

import pytest
from hexbytes import HexBytes

from vesper_sdk.core.adapters.models import TransactionOutcome
from vesper_sdk.core.errors import EstimationFailed, NoSigningCapability
from vesper_sdk.core.utils.events import EventKind, OperationEvents, OperationState
from vesper_sdk.core.utils.transaction import (
    TransactionRevertedError,
    TransactionSequencer,
    TransactionStep,
    calculate_total_fee,
    find_return_value,
    plan_fee,
)

SENDER = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
POOL = "0x0C49066C0808Ee8c673553B7cbd99BCC9ABf113d"


def make_invocation(gas=100_000, tx=None):
    invocation = MagicMock()
    invocation.estimate_gas = AsyncMock(return_value=gas)
    invocation.build_transaction = AsyncMock(
        side_effect=lambda params: {**(tx or {}), **params, "to": POOL}
    )
    return invocation


def make_web3(statuses=(1,), gas_used=50_000, gas_price=10):
    web3 = MagicMock()
    hashes = [HexBytes(bytes([i + 1]) * 32) for i in range(len(statuses))]
    web3.eth.send_transaction = AsyncMock(side_effect=hashes)
    web3.eth.send_raw_transaction = AsyncMock(side_effect=hashes)
    web3.eth.get_transaction_count = AsyncMock(return_value=7)
    web3.eth.wait_for_transaction_receipt = AsyncMock(
        side_effect=[
            {"status": status, "gasUsed": gas_used, "transactionHash": h}
            for status, h in zip(statuses, hashes, strict=True)
        ]
    )
    web3.eth.get_transaction = AsyncMock(return_value={"gasPrice": gas_price})
    return web3


def outcome(gas_used, gas_price, status=1):
    return TransactionOutcome(
        transaction={"gasPrice": gas_price},
        receipt={"gasUsed": gas_used, "status": status},
    )


class TestFees:
    def test_total_fee_sums_every_step(self):
        assert calculate_total_fee([outcome(21000, 5), outcome(50000, 7)]) == str(
            21000 * 5 + 50000 * 7
        )

    def test_effective_gas_price_fallback(self):
        result = TransactionOutcome(
            transaction={}, receipt={"gasUsed": 10, "effectiveGasPrice": 3}
        )
        assert result.fee == 30

    def test_plan_fee_uses_expected_gas(self):
        steps = [
            TransactionStep(MagicMock(), "approval", expected_gas=66000),
            TransactionStep(MagicMock(), "deposit", expected_gas=155000),
        ]
        assert plan_fee(2, steps) == str(2 * (66000 + 155000))


class TestFindReturnValue:
    def test_matches_contract_address(self):
        contract = MagicMock()
        contract.address = POOL
        contract.events.Transfer.return_value.process_receipt.return_value = [
            {"address": SENDER, "args": {"value": 1}},
            {"address": POOL.lower(), "args": {"value": 42}},
        ]
        assert find_return_value({"logs": []}, contract, "Transfer", "value") == "42"

    def test_missing_event(self):
        contract = MagicMock()
        contract.address = POOL
        contract.events.Withdraw.return_value.process_receipt.return_value = []
        assert find_return_value({"logs": []}, contract, "Withdraw", "amount") is None


@pytest.mark.asyncio
class TestSequencer:
    async def test_estimate_applies_overestimation(self):
        sequencer = TransactionSequencer(make_web3(), overestimation=1.25)
        gas = await sequencer.estimate_gas(
            TransactionStep(make_invocation(gas=100_001), "deposit"), {"from": SENDER}
        )
        assert gas == 125_002

    async def test_explicit_gas_skips_estimation(self):
        invocation = make_invocation()
        sequencer = TransactionSequencer(make_web3())
        gas = await sequencer.estimate_gas(
            TransactionStep(invocation, "deposit"), {"from": SENDER, "gas": 90_000}
        )
        assert gas == 90_000
        invocation.estimate_gas.assert_not_awaited()

    async def test_estimation_failure_is_wrapped(self):
        invocation = make_invocation()
        invocation.estimate_gas.side_effect = ValueError("execution reverted")
        sequencer = TransactionSequencer(make_web3())
        with pytest.raises(EstimationFailed) as exc_info:
            await sequencer.estimate_gas(TransactionStep(invocation, "rebalance"), {})
        assert exc_info.value.label == "rebalance"

    async def test_signing_failure_is_not_wrapped(self):
        invocation = make_invocation()
        invocation.estimate_gas.side_effect = NoSigningCapability("no signer")
        sequencer = TransactionSequencer(make_web3())
        with pytest.raises(NoSigningCapability):
            await sequencer.estimate_gas(TransactionStep(invocation, "migrate"), {})

    async def test_execute_uses_consecutive_nonces(self):
        web3 = make_web3(statuses=(1, 1))
        approval, deposit = make_invocation(), make_invocation()
        sequencer = TransactionSequencer(web3)
        outcomes = await sequencer.execute(
            [TransactionStep(approval, "approval"), TransactionStep(deposit, "deposit")],
            {"from": SENDER},
            base_nonce=3,
        )
        assert [o.label for o in outcomes] == ["approval", "deposit"]
        assert approval.build_transaction.await_args.args[0]["nonce"] == 3
        assert deposit.build_transaction.await_args.args[0]["nonce"] == 4
        assert web3.eth.send_transaction.await_count == 2

    async def test_value_is_forwarded(self):
        web3 = make_web3()
        invocation = make_invocation()
        sequencer = TransactionSequencer(web3)
        await sequencer.execute(
            [TransactionStep(invocation, "deposit", value=10**18)], {"from": SENDER}
        )
        assert invocation.estimate_gas.await_args.args[0]["value"] == 10**18
        assert invocation.build_transaction.await_args.args[0]["value"] == 10**18

    async def test_sign_callback_sends_raw(self):
        web3 = make_web3()
        sign_callback = AsyncMock(return_value=b"\x01\x02")
        sequencer = TransactionSequencer(web3, sign_callback=sign_callback)
        await sequencer.execute(
            [TransactionStep(make_invocation(), "claim")], {"from": SENDER}
        )
        signed_tx = sign_callback.await_args.args[0]
        assert signed_tx["nonce"] == 7
        web3.eth.send_raw_transaction.assert_awaited_once_with(b"\x01\x02")
        web3.eth.send_transaction.assert_not_awaited()

    async def test_revert_stops_remaining_steps(self):
        web3 = make_web3(statuses=(0, 1))
        second = make_invocation()
        sequencer = TransactionSequencer(web3)
        with pytest.raises(TransactionRevertedError, match="status=0"):
            await sequencer.execute(
                [
                    TransactionStep(make_invocation(), "approval"),
                    TransactionStep(second, "deposit"),
                ],
                {"from": SENDER},
            )
        second.estimate_gas.assert_not_awaited()

    async def test_events_follow_step_lifecycle(self):
        events = OperationEvents()
        seen = []
        events.subscribe(lambda event: seen.append((event.kind, event.step)))
        sequencer = TransactionSequencer(make_web3(), events=events)
        outcomes = await sequencer.execute(
            [TransactionStep(make_invocation(), "claim")], {"from": SENDER}
        )
        result = sequencer.complete(outcomes)

        kinds = [kind for kind, _ in seen if kind != EventKind.STATE_CHANGED]
        assert kinds == [
            EventKind.GAS_ESTIMATED,
            EventKind.TRANSACTION_HASH,
            EventKind.RECEIPT,
            EventKind.COMPLETED,
        ]
        assert events.state == OperationState.COMPLETED
        assert result.status is True
        assert result.fees == str(50_000 * 10)

    async def test_plan_emits_expected_fee(self):
        web3 = make_web3()
        web3.eth.gas_price = _awaitable(3)
        events = OperationEvents()
        planned = []
        events.subscribe(lambda event: planned.append(event.data), [EventKind.PLANNED])
        sequencer = TransactionSequencer(web3, events=events)
        await sequencer.plan([TransactionStep(MagicMock(), "claim", expected_gas=100)])
        assert planned[0].expected_fee == "300"


def _awaitable(value):
    async def _inner():
        return value

    return _inner()
