import pytest

from vesper_sdk.core.utils.events import (
    EventKind,
    OperationEvents,
    OperationState,
)


class TestOperationEvents:
    def test_subscribe_receives_events(self):
        events = OperationEvents()
        seen = []
        events.subscribe(seen.append)

        events.emit(EventKind.GAS_ESTIMATED, step="deposit", data=1000)

        assert len(seen) == 1
        assert seen[0].kind == EventKind.GAS_ESTIMATED
        assert seen[0].step == "deposit"
        assert seen[0].data == 1000

    def test_kind_filter(self):
        events = OperationEvents()
        hashes = []
        events.subscribe(hashes.append, kinds=[EventKind.TRANSACTION_HASH])

        events.emit(EventKind.GAS_ESTIMATED, data=1)
        events.emit(EventKind.TRANSACTION_HASH, data="0xabc")

        assert [e.data for e in hashes] == ["0xabc"]
        assert events.has_listeners(EventKind.TRANSACTION_HASH)
        assert not events.has_listeners(EventKind.FAILED)

    def test_cancel_stops_delivery(self):
        events = OperationEvents()
        seen = []
        subscription = events.subscribe(seen.append)
        subscription.cancel()
        subscription.cancel()

        events.emit(EventKind.COMPLETED)

        assert seen == []
        assert not events.has_listeners(EventKind.COMPLETED)

    def test_transition_records_history(self):
        events = OperationEvents()
        states = []
        events.subscribe(lambda e: states.append(e.data), kinds=[EventKind.STATE_CHANGED])

        events.transition(OperationState.BUILDING)
        events.transition(OperationState.BUILDING)
        events.transition(OperationState.SENDING)

        assert states == [OperationState.BUILDING, OperationState.SENDING]
        assert events.history == [OperationState.BUILDING, OperationState.SENDING]

    def test_track_failure_moves_to_error_and_reraises(self):
        events = OperationEvents()
        failures = []
        events.subscribe(failures.append, kinds=[EventKind.FAILED])

        with pytest.raises(RuntimeError, match="boom"):
            with events.track("deposit"):
                raise RuntimeError("boom")

        assert events.state == OperationState.ERROR
        assert events.history[0] == OperationState.BUILDING
        assert len(failures) == 1
        assert failures[0].operation == "deposit"
        assert str(failures[0].data) == "boom"

    def test_track_failure_without_listener_still_raises(self):
        events = OperationEvents()
        with pytest.raises(ValueError):
            with events.track("withdraw"):
                raise ValueError("bad")
        assert events.state == OperationState.ERROR
