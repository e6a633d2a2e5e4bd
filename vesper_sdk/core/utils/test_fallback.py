from unittest.mock import AsyncMock, MagicMock

import pytest

from vesper_sdk.core.utils.fallback import first_successful


@pytest.mark.asyncio
async def test_returns_first_success():
    second = AsyncMock(return_value="2")
    result = await first_successful(
        [("primary", AsyncMock(return_value="1")), ("secondary", second)],
        default="0",
        context="interest",
    )
    assert result == "1"
    second.assert_not_awaited()


@pytest.mark.asyncio
async def test_falls_through_failures_in_order():
    calls = []

    async def failing():
        calls.append("primary")
        raise RuntimeError("reverted")

    async def legacy():
        calls.append("legacy")
        return "42"

    result = await first_successful(
        [("primary", failing), ("legacy", legacy)], default="0", context="interest"
    )
    assert result == "42"
    assert calls == ["primary", "legacy"]


@pytest.mark.asyncio
async def test_empty_values_hand_over():
    result = await first_successful(
        [("a", AsyncMock(return_value=None)), ("b", AsyncMock(return_value="7"))],
        default="0",
        context="x",
    )
    assert result == "7"


@pytest.mark.asyncio
async def test_default_when_all_fail_and_each_failure_logged():
    log = MagicMock()
    result = await first_successful(
        [
            ("a", AsyncMock(side_effect=RuntimeError("a"))),
            ("b", AsyncMock(side_effect=ValueError("b"))),
        ],
        default="0",
        context="interest",
        log=log,
    )
    assert result == "0"
    # one warning per failed strategy plus the final one
    assert log.warning.call_count == 3
