from __future__ import annotations

from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, TypeVar

T = TypeVar("T")


def require_wallet(fn: Callable) -> Callable:
    """Return ``(False, ...)`` early when the adapter has no wallet to act for."""

    @wraps(fn)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        if not getattr(self, "wallet_address", None):
            return False, "wallet address not configured"
        return await fn(self, *args, **kwargs)

    return wrapper


def status_tuple(
    fn: Callable[..., Coroutine[Any, Any, T]],
) -> Callable[..., Coroutine[Any, Any, tuple[bool, T | str]]]:
    """Wrap an async adapter method to return ``(True, result)`` or ``(False, error)``.

    The error string carries the exception class so callers can tell an
    ``EstimationFailed`` from a revert without the traceback.
    """

    @wraps(fn)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> tuple[bool, T | str]:
        try:
            return True, await fn(self, *args, **kwargs)
        except Exception as exc:
            self.logger.error(f"{fn.__name__} failed: {type(exc).__name__}: {exc}")
            return False, f"{type(exc).__name__}: {exc}"

    return wrapper  # type: ignore[return-value]
