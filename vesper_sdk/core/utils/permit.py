"""EIP-2612 permit signing for pool tokens.

A permit lets a helper contract spend the caller's pool tokens without a
separate approval transaction. ``PermitCall`` wraps the contract call that
consumes the signature so the sequencer can treat it like any other step.
"""

from __future__ import annotations

import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any

from eth_utils import to_checksum_address
from hexbytes import HexBytes
from loguru import logger
from web3 import AsyncWeb3
from web3.types import RPCEndpoint

from vesper_sdk.core.adapters.BaseAdapter import SignTypedDataCallback
from vesper_sdk.core.constants.base import (
    PERMIT_DEADLINE_SECONDS,
    PERMIT_VERSION,
    TYPED_DATA_SIGN_METHOD,
)
from vesper_sdk.core.errors import NoSigningCapability

PERMIT_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "Permit": [
        {"name": "owner", "type": "address"},
        {"name": "spender", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}


@dataclass(frozen=True)
class PermitSignature:
    r: str
    s: str
    v: int
    deadline: int | None = None


def build_permit_typed_data(
    name: str,
    chain_id: int,
    verifying_contract: str,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
) -> dict[str, Any]:
    return {
        "types": PERMIT_TYPES,
        "primaryType": "Permit",
        "domain": {
            "name": name,
            "version": PERMIT_VERSION,
            "chainId": int(chain_id),
            "verifyingContract": to_checksum_address(verifying_contract),
        },
        "message": {
            "owner": to_checksum_address(owner),
            "spender": to_checksum_address(spender),
            "value": int(value),
            "nonce": int(nonce),
            "deadline": int(deadline),
        },
    }


def split_signature(signature: str | bytes) -> PermitSignature:
    """Split a 65-byte ``r || s || v`` signature into its components."""
    raw = bytes(HexBytes(signature))
    if len(raw) != 65:
        raise ValueError(f"Expected a 65 byte signature, got {len(raw)} bytes")
    return PermitSignature(
        r="0x" + raw[:32].hex(),
        s="0x" + raw[32:64].hex(),
        v=raw[64],
    )


def permit_deadline(now: float | None = None) -> int:
    return int(now if now is not None else time.time()) + PERMIT_DEADLINE_SECONDS


class PermitSigner:
    """Signs permits with a typed-data callback, or the node's managed key."""

    def __init__(
        self,
        web3: AsyncWeb3,
        sign_typed_data: SignTypedDataCallback | None = None,
    ):
        self.web3 = web3
        self.sign_typed_data = sign_typed_data

    async def _node_sign(self, owner: str, payload: dict[str, Any]) -> str | None:
        response = await self.web3.provider.make_request(
            RPCEndpoint(TYPED_DATA_SIGN_METHOD),
            [to_checksum_address(owner), json.dumps(payload)],
        )
        if response.get("error"):
            error = response["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise ValueError(f"{TYPED_DATA_SIGN_METHOD} failed: {message}")
        return response.get("result")

    async def sign(self, owner: str, payload: dict[str, Any]) -> PermitSignature:
        try:
            if self.sign_typed_data is not None:
                signature = await self.sign_typed_data(payload)
            else:
                signature = await self._node_sign(owner, payload)
        except Exception as exc:
            raise NoSigningCapability(f"Could not sign typed data: {exc}") from exc

        if not signature:
            raise NoSigningCapability("Signer returned an empty signature")
        try:
            return split_signature(signature)
        except ValueError as exc:
            raise NoSigningCapability(str(exc)) from exc

    async def sign_permit(
        self,
        pool_contract: Any,
        *,
        owner: str,
        spender: str,
        value: int,
        chain_id: int,
        deadline: int | None = None,
    ) -> PermitSignature:
        name = await pool_contract.functions.name().call()
        nonce = await pool_contract.functions.nonces(to_checksum_address(owner)).call()
        deadline = deadline if deadline is not None else permit_deadline()
        payload = build_permit_typed_data(
            name=name,
            chain_id=chain_id,
            verifying_contract=pool_contract.address,
            owner=owner,
            spender=spender,
            value=value,
            nonce=nonce,
            deadline=deadline,
        )
        logger.debug(
            f"Signing permit for {spender} to spend {value} of {name} (nonce {nonce})"
        )
        signature = await self.sign(owner, payload)
        return replace(signature, deadline=deadline)


class PermitCall:
    """Contract call that consumes a permit signature.

    ``estimate_gas`` signs and records the signature, ``build_transaction``
    reuses it so the estimated and the sent call carry the same permit.
    """

    def __init__(
        self,
        sign: Callable[[], Awaitable[PermitSignature]],
        build_call: Callable[[PermitSignature], Any],
    ):
        self._sign = sign
        self._build_call = build_call
        self._signature: PermitSignature | None = None

    @property
    def signature(self) -> PermitSignature | None:
        return self._signature

    async def _ensure_signature(self) -> PermitSignature:
        if self._signature is None:
            self._signature = await self._sign()
        return self._signature

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        signature = await self._ensure_signature()
        return await self._build_call(signature).estimate_gas(tx)

    async def build_transaction(self, tx: dict[str, Any]) -> dict[str, Any]:
        signature = await self._ensure_signature()
        return await self._build_call(signature).build_transaction(tx)
