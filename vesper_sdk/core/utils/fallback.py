from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")

Attempt = tuple[str, Callable[[], Awaitable[Any]]]


async def first_successful(
    attempts: Sequence[Attempt],
    *,
    default: T,
    context: str,
    log: Any = logger,
) -> T:
    """Evaluate named async strategies in order; return the first usable value.

    A strategy that raises, or returns ``None`` or an empty string, hands over
    to the next one. When every strategy fails ``default`` is returned.
    """
    for name, attempt in attempts:
        try:
            value = await attempt()
        except Exception as exc:
            log.warning(f"{context}: {name} failed: {exc}")
            continue
        if value is None or value == "":
            log.warning(f"{context}: {name} returned no value")
            continue
        log.debug(f"{context}: resolved by {name}")
        return value
    log.warning(f"{context}: all strategies failed, assuming {default!r}")
    return default
