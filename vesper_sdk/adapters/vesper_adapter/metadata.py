"""Pool, contract and token listings per network.

Addresses are supplied by the caller (a dict or a JSON file); nothing here
ships deployment addresses.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from eth_utils import to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator

from vesper_sdk.core.constants.base import (
    NATIVE_ASSET_DECIMALS,
    NATIVE_ASSET_SYMBOL,
)


def _checksum_or_none(value: str | None) -> str | None:
    return to_checksum_address(value) if value else None


class _Listing(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chain_id: int = Field(alias="chainId")

    @field_validator("address", mode="before", check_fields=False)
    @classmethod
    def _checksum_address(cls, value: str | None) -> str | None:
        return _checksum_or_none(value)


class PoolMetadata(_Listing):
    name: str
    address: str | None = None
    asset: str
    stage: str = "prod"
    version: int = 1
    superseded_by: str | None = Field(default=None, alias="supersededBy")
    vsp_rewards: bool = Field(default=False, alias="vspRewards")

    @property
    def is_native(self) -> bool:
        return self.asset == NATIVE_ASSET_SYMBOL


class ContractMetadata(_Listing):
    name: str
    address: str


class TokenMetadata(_Listing):
    symbol: str
    address: str
    decimals: int
    name: str | None = None


class VesperMetadata(BaseModel):
    pools: list[PoolMetadata] = Field(default_factory=list)
    controllers: list[ContractMetadata] = Field(default_factory=list)
    tokens: list[TokenMetadata] = Field(default_factory=list)
    support: list[ContractMetadata] = Field(default_factory=list)

    def for_chain(self, chain_id: int) -> VesperMetadata:
        cid = int(chain_id)
        return VesperMetadata(
            pools=[p for p in self.pools if p.chain_id == cid],
            controllers=[c for c in self.controllers if c.chain_id == cid],
            tokens=[t for t in self.tokens if t.chain_id == cid],
            support=[s for s in self.support if s.chain_id == cid],
        )

    def find_token(self, symbol: str) -> TokenMetadata | None:
        return next((t for t in self.tokens if t.symbol == symbol), None)

    def find_controller(self, name: str) -> ContractMetadata | None:
        return next((c for c in self.controllers if c.name == name), None)

    def find_support(self, name: str) -> ContractMetadata | None:
        return next((c for c in self.support if c.name == name), None)

    def asset_decimals(self, symbol: str) -> int:
        if symbol == NATIVE_ASSET_SYMBOL:
            return NATIVE_ASSET_DECIMALS
        token = self.find_token(symbol)
        if token is None:
            raise ValueError(f"Unknown token {symbol}")
        return token.decimals


def load_metadata(source: VesperMetadata | dict[str, Any] | str | Path) -> VesperMetadata:
    if isinstance(source, VesperMetadata):
        return source
    if isinstance(source, dict):
        return VesperMetadata.model_validate(source)
    path = Path(source).expanduser()
    return VesperMetadata.model_validate(json.loads(path.read_text()))


def filter_pools(
    pools: Iterable[PoolMetadata], stages: Iterable[str] | str | None = None
) -> list[PoolMetadata]:
    """Select pools by stage.

    ``"all"`` keeps every pool, ``"-retired"`` every pool not retired, and
    anything else is a list of stages to keep. Pools without an address are
    dropped.
    """
    if stages is None:
        wanted: list[str] = ["all"]
    elif isinstance(stages, str):
        wanted = [stages]
    else:
        wanted = list(stages)

    def keep(pool: PoolMetadata) -> bool:
        if "all" in wanted:
            return True
        if "-retired" in wanted:
            return pool.stage != "retired"
        return pool.stage in wanted

    selected = [p for p in pools if p.address and keep(p)]
    return sorted(selected, key=lambda p: p.name)
