from __future__ import annotations

from decimal import Decimal
from typing import Any

from eth_utils import to_checksum_address

from vesper_sdk.adapters.vesper_adapter.oracle import UniswapRateOracle
from vesper_sdk.adapters.vesper_adapter.reads import PoolReader
from vesper_sdk.adapters.vesper_adapter.registry import ContractRegistry
from vesper_sdk.core.adapters.BaseAdapter import SignCallback, SignTypedDataCallback
from vesper_sdk.core.adapters.models import OperationResult
from vesper_sdk.core.constants.base import (
    DEFAULT_DUST_TOLERANCE,
    DEFAULT_GAS_OVERESTIMATION,
    EXPECTED_GAS,
    MANTISSA,
    MIGRATOR_SUPPORT_NAME,
    POOL_TOKEN_DECIMALS,
)
from vesper_sdk.core.constants.vesper_abi import MIGRATOR_ABI
from vesper_sdk.core.errors import InvalidAmount, NoPoolValue
from vesper_sdk.core.utils.events import OperationEvents
from vesper_sdk.core.utils.permit import PermitCall, PermitSignature, PermitSigner
from vesper_sdk.core.utils.transaction import (
    TransactionSequencer,
    TransactionStep,
    find_return_value,
)
from vesper_sdk.core.utils.units import from_base_units


def _base_units(amount: int | str) -> int:
    if isinstance(amount, bool):
        raise InvalidAmount(amount, "expected a base-unit integer")
    text = str(amount).strip()
    if not text.isdigit():
        raise InvalidAmount(amount, "expected a base-unit integer")
    return int(text)


class PoolMethods(PoolReader):
    """Reads plus the write operations of one pool.

    Each write runs as its own short state machine on an ``OperationEvents``
    channel (pass one in to observe it) and returns an ``OperationResult``.
    Failures are raised; nothing is retried.
    """

    def __init__(
        self,
        registry: ContractRegistry,
        pool: str,
        oracle: UniswapRateOracle,
        *,
        wallet_address: str | None = None,
        sign_callback: SignCallback | None = None,
        sign_typed_data: SignTypedDataCallback | None = None,
        overestimation: float = DEFAULT_GAS_OVERESTIMATION,
        dust_tolerance: float = DEFAULT_DUST_TOLERANCE,
        expected_gas: dict[str, int] | None = None,
    ):
        super().__init__(registry, pool, oracle, wallet_address=wallet_address)
        self.sign_callback = sign_callback
        self.sign_typed_data = sign_typed_data
        self.overestimation = float(overestimation)
        self.dust_tolerance = float(dust_tolerance)
        self.expected_gas = expected_gas or dict(EXPECTED_GAS)

    def _tx_params(self, tx_params: dict[str, Any] | None) -> dict[str, Any]:
        params = {"from": self.wallet_address, **(tx_params or {})}
        if not params.get("from"):
            raise ValueError("No sender address given and no wallet configured")
        params["from"] = to_checksum_address(params["from"])
        return params

    def _step(self, invocation: Any, label: str, value: int = 0) -> TransactionStep:
        return TransactionStep(
            invocation=invocation,
            label=label,
            expected_gas=self.expected_gas.get(label, 0),
            value=value,
        )

    async def _execute(
        self,
        steps: list[TransactionStep],
        params: dict[str, Any],
        events: OperationEvents,
    ) -> tuple[TransactionSequencer, list]:
        sequencer = TransactionSequencer(
            self.web3,
            events=events,
            overestimation=self.overestimation,
            sign_callback=self.sign_callback,
        )
        await sequencer.plan(steps)
        base_nonce = params.pop("nonce", None)
        outcomes = await sequencer.execute(steps, params, base_nonce=base_nonce)
        return sequencer, outcomes

    async def approve_and_deposit(
        self,
        amount: int | str,
        approval_amount: int | str | None = None,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        """Deposit ``amount`` asset base units, approving first when needed.

        ``approval_amount`` (e.g. ``MAX_UINT256``) is the allowance granted
        when the current one does not cover ``amount``.
        """
        value = _base_units(amount)
        events = events or OperationEvents()
        with events.track("deposit"):
            handle = await self.handle()
            params = self._tx_params(tx_params)
            sender = params["from"]
            self.logger.info(
                f"Initiating deposit of {from_base_units(value, handle.asset_decimals)} "
                f"{handle.asset} into {handle.name}"
            )

            steps: list[TransactionStep] = []
            if not handle.is_native:
                remaining = int(
                    await handle.asset_contract.functions.allowance(
                        sender, handle.address
                    ).call()
                )
                self.logger.debug(
                    f"Allowance remaining is "
                    f"{from_base_units(remaining, handle.asset_decimals)} {handle.asset}"
                )
                if remaining < value:
                    approve_value = (
                        value if approval_amount is None else _base_units(approval_amount)
                    )
                    steps.append(
                        self._step(
                            handle.asset_contract.functions.approve(
                                handle.address, approve_value
                            ),
                            "approval",
                        )
                    )
            steps.append(
                self._step(
                    handle.shape.deposit_call(
                        handle.contract, value, native=handle.is_native
                    ),
                    "deposit",
                    value=value if handle.is_native else 0,
                )
            )

            sequencer, outcomes = await self._execute(steps, params, events)
            received = find_return_value(
                outcomes[-1].receipt, handle.contract, "Transfer", "value"
            )
            self.logger.info(
                f"Deposit of {from_base_units(value, handle.asset_decimals)} "
                f"{handle.asset} completed, received "
                f"{from_base_units(received or 0)} {handle.name}"
            )
            return sequencer.complete(
                outcomes, sent=str(value), received=received, decimals=POOL_TOKEN_DECIMALS
            )

    async def deposit(
        self,
        amount: int | str,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        return await self.approve_and_deposit(
            amount, None, tx_params=tx_params, events=events
        )

    async def withdraw(
        self,
        amount: int | str,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        """Withdraw ``amount`` deposit-asset base units worth of pool tokens.

        A request within the dust tolerance of the full pool-token balance
        burns the whole balance; a request above the balance is rejected.
        """
        value = _base_units(amount)
        events = events or OperationEvents()
        with events.track("withdraw"):
            handle = await self.handle()
            params = self._tx_params(tx_params)
            sender = params["from"]
            self.logger.info(
                f"Initiating withdrawal of "
                f"{from_base_units(value, handle.asset_decimals)} {handle.asset}"
            )

            token_value = int(await self.get_token_value())
            if token_value <= 0:
                raise NoPoolValue(f"{handle.name} has outstanding supply but no value")
            token_amount = value * MANTISSA // token_value
            balance = int(await self.get_balance(sender))
            if token_amount > balance:
                raise InvalidAmount(
                    value,
                    f"worth {token_amount} {handle.name}, balance is {balance}",
                )
            threshold = Decimal(balance) * (1 - Decimal(str(self.dust_tolerance)))
            if balance and token_amount >= threshold:
                if token_amount != balance:
                    self.logger.debug(
                        f"Sweeping {handle.name} dust: {token_amount} -> {balance}"
                    )
                token_amount = balance
            self.logger.debug(f"Sending {from_base_units(token_amount)} {handle.name}")

            steps = [
                self._step(
                    handle.shape.withdraw_call(
                        handle.contract, token_amount, native=handle.is_native
                    ),
                    "withdraw",
                )
            ]
            sequencer, outcomes = await self._execute(steps, params, events)
            received = find_return_value(
                outcomes[-1].receipt, handle.contract, "Withdraw", "amount"
            )
            self.logger.info(
                f"Withdrawal completed, received "
                f"{from_base_units(received or 0, handle.asset_decimals)} {handle.asset}"
            )
            return sequencer.complete(
                outcomes,
                sent=str(token_amount),
                received=received,
                decimals=handle.asset_decimals,
            )

    async def claim_rewards(
        self,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        events = events or OperationEvents()
        with events.track("claim"):
            params = self._tx_params(tx_params)
            sender = params["from"]
            rewards = await self._pool_rewards()
            claimable = await self.get_claimable_rewards(sender)
            self.logger.info(f"Initiating claim of {from_base_units(claimable)} VSP")

            steps = [self._step(rewards.functions.claimReward(sender), "claim")]
            sequencer, outcomes = await self._execute(steps, params, events)
            received = find_return_value(
                outcomes[-1].receipt, rewards, "RewardPaid", "reward"
            )
            self.logger.info(f"Claim of {from_base_units(received or 0)} VSP completed")
            return sequencer.complete(
                outcomes, received=received, decimals=POOL_TOKEN_DECIMALS
            )

    async def rebalance(
        self,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        events = events or OperationEvents()
        with events.track("rebalance"):
            handle = await self.handle()
            params = self._tx_params(tx_params)
            self.logger.info(f"Initiating rebalance of {handle.name}")
            call = await handle.shape.rebalance_call(handle.contract, self._strategy)
            sequencer, outcomes = await self._execute(
                [self._step(call, "rebalance")], params, events
            )
            return sequencer.complete(outcomes)

    async def migrate(
        self,
        tx_params: dict[str, Any] | None = None,
        events: OperationEvents | None = None,
    ) -> OperationResult:
        """Move the whole pool-token balance into the successor pool.

        Uses a signed permit instead of an approval transaction when the
        migration helper's allowance does not cover the balance.
        """
        events = events or OperationEvents()
        with events.track("migrate"):
            resolved, handle = await self._contracts()
            params = self._tx_params(tx_params)
            sender = params["from"]
            successor = await self.registry.successor_of(handle)

            migrator_listing = resolved.metadata.find_support(MIGRATOR_SUPPORT_NAME)
            if migrator_listing is None:
                raise ValueError(f"{MIGRATOR_SUPPORT_NAME} is not listed on this network")
            migrator = self.web3.eth.contract(
                address=migrator_listing.address, abi=MIGRATOR_ABI
            )

            shares = int(await self.get_balance(sender))
            if shares == 0:
                raise InvalidAmount(shares, f"no {handle.name} tokens to migrate")
            self.logger.info(
                f"Initiating migration of {from_base_units(shares)} {handle.name} "
                f"to {successor.name}"
            )

            allowance = int(
                await handle.contract.functions.allowance(
                    sender, migrator.address
                ).call()
            )
            if allowance >= shares:
                invocation: Any = migrator.functions.migrate(
                    handle.address, successor.address, shares
                )
            else:
                signer = PermitSigner(self.web3, self.sign_typed_data)

                async def sign() -> PermitSignature:
                    return await signer.sign_permit(
                        handle.contract,
                        owner=sender,
                        spender=migrator.address,
                        value=shares,
                        chain_id=resolved.chain_id,
                    )

                def build_call(signature: PermitSignature) -> Any:
                    return migrator.functions.migrateWithPermit(
                        handle.address,
                        successor.address,
                        shares,
                        signature.deadline,
                        signature.v,
                        signature.r,
                        signature.s,
                    )

                invocation = PermitCall(sign, build_call)

            sequencer, outcomes = await self._execute(
                [self._step(invocation, "migrate")], params, events
            )
            received = find_return_value(
                outcomes[-1].receipt, successor.contract, "Transfer", "value"
            )
            self.logger.info(
                f"Migration completed, received {from_base_units(received or 0)} "
                f"{successor.name}"
            )
            return sequencer.complete(
                outcomes,
                sent=str(shares),
                received=received,
                decimals=POOL_TOKEN_DECIMALS,
            )
