from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger


class EventKind(str, Enum):
    PLANNED = "planned"
    GAS_ESTIMATED = "gas_estimated"
    TRANSACTION_HASH = "transaction_hash"
    RECEIPT = "receipt"
    COMPLETED = "completed"
    FAILED = "failed"
    STATE_CHANGED = "state_changed"


class OperationState(str, Enum):
    BUILDING = "building"
    ESTIMATING = "estimating"
    SENDING = "sending"
    CONFIRMING = "confirming"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class LifecycleEvent:
    kind: EventKind
    operation: str | None = None
    step: str | None = None
    data: Any = None


Listener = Callable[[LifecycleEvent], None]


@dataclass(eq=False)
class Subscription:
    channel: OperationEvents
    listener: Listener
    kinds: frozenset[EventKind] | None = None
    active: bool = field(default=True)

    def accepts(self, kind: EventKind) -> bool:
        return self.active and (self.kinds is None or kind in self.kinds)

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self.channel._remove(self)


class OperationEvents:
    """Lifecycle notifications for a single write operation.

    Listeners are plain callables receiving a ``LifecycleEvent``. The channel
    also tracks the operation state so callers can inspect where a failed
    operation stopped.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self.operation: str | None = None
        self.state: OperationState | None = None
        self.history: list[OperationState] = []

    def subscribe(
        self, listener: Listener, kinds: Iterable[EventKind] | None = None
    ) -> Subscription:
        subscription = Subscription(
            channel=self,
            listener=listener,
            kinds=frozenset(kinds) if kinds is not None else None,
        )
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def has_listeners(self, kind: EventKind) -> bool:
        return any(s.accepts(kind) for s in self._subscriptions)

    def emit(self, kind: EventKind, step: str | None = None, data: Any = None) -> None:
        event = LifecycleEvent(kind=kind, operation=self.operation, step=step, data=data)
        for subscription in list(self._subscriptions):
            if subscription.accepts(kind):
                subscription.listener(event)

    def transition(self, state: OperationState, step: str | None = None) -> None:
        if state == self.state:
            return
        self.state = state
        self.history.append(state)
        self.emit(EventKind.STATE_CHANGED, step=step, data=state)

    @contextmanager
    def track(self, operation: str) -> Iterator[OperationEvents]:
        """Run an operation body; failures move the channel to ERROR and re-raise."""
        self.operation = operation
        self.transition(OperationState.BUILDING)
        try:
            yield self
        except Exception as exc:
            logger.error(f"{operation} failed in state {self.state}: {exc}")
            self.transition(OperationState.ERROR)
            if self.has_listeners(EventKind.FAILED):
                self.emit(EventKind.FAILED, data=exc)
            raise
