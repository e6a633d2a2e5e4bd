from __future__ import annotations

import re
from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext

from vesper_sdk.core.errors import InvalidAmount

_DECIMAL_RE = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")
_INTEGER_RE = re.compile(r"^\d+$")

DEFAULT_DECIMALS = 18


def _check_decimals(decimals: int) -> int:
    d = int(decimals)
    if d < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    return d


def _to_decimal(value: str | int | Decimal) -> Decimal:
    if isinstance(value, bool) or isinstance(value, float):
        # floats have already lost precision by the time they get here
        raise InvalidAmount(value, "expected a decimal string")
    if isinstance(value, Decimal):
        if not value.is_finite() or value < 0:
            raise InvalidAmount(value, "must be a finite non-negative number")
        return value
    if isinstance(value, int):
        if value < 0:
            raise InvalidAmount(value, "must be non-negative")
        return Decimal(value)
    text = str(value).strip()
    if not _DECIMAL_RE.match(text):
        raise InvalidAmount(value)
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise InvalidAmount(value) from exc


def to_base_units(
    amount: str | int | Decimal,
    decimals: int = DEFAULT_DECIMALS,
    *,
    rounding: str = ROUND_DOWN,
) -> str:
    """Convert a human decimal amount into an integer base-unit string.

    ``to_base_units("1.23", 8) == "123000000"``. Digits beyond ``decimals``
    are dropped according to ``rounding`` (truncation by default).
    """
    places = _check_decimals(decimals)
    value = _to_decimal(amount)
    with localcontext() as ctx:
        ctx.prec = len(value.as_tuple().digits) + places + 2
        scaled = value.scaleb(places)
        return str(int(scaled.to_integral_value(rounding=rounding)))


def from_base_units(amount: str | int, decimals: int = DEFAULT_DECIMALS) -> str:
    """Convert an integer base-unit amount into its exact decimal string."""
    places = _check_decimals(decimals)
    if isinstance(amount, bool):
        raise InvalidAmount(amount, "expected an integer string")
    text = str(amount).strip()
    if not _INTEGER_RE.match(text):
        raise InvalidAmount(amount, "expected a non-negative integer string")
    with localcontext() as ctx:
        ctx.prec = len(text) + places + 2
        value = Decimal(int(text)).scaleb(-places)
        if value == 0:
            return "0"
        return format(value.normalize(), "f")
