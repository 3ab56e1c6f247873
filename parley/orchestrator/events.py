"""Observable state and cancellation primitives for the orchestrator.

The orchestrator publishes its state through these small primitives so that
presentation code can read the latest value synchronously and still be
notified of every transition, in order.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]
Unsubscribe = Callable[[], None]


class EventChannel(Generic[T]):
    """Broadcast channel delivering each emitted value to all listeners.

    Listeners run synchronously, in subscription order. A failing listener
    is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener[T]] = []

    def subscribe(self, listener: Listener[T]) -> Unsubscribe:
        """Register a listener and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, value: T) -> None:
        """Deliver a value to every current listener."""
        for listener in list(self._listeners):
            self._deliver(listener, value)

    @staticmethod
    def _deliver(listener: Listener[T], value: T) -> None:
        try:
            listener(value)
        except Exception:
            logger.exception(f"Listener {listener!r} failed")

    @property
    def listener_count(self) -> int:
        """Number of active listeners."""
        return len(self._listeners)


class StateSubject(EventChannel[T]):
    """Event channel that also remembers the latest value.

    New subscribers immediately receive the current value.
    """

    def __init__(self, initial: T) -> None:
        super().__init__()
        self._value = initial

    @property
    def value(self) -> T:
        """The latest value."""
        return self._value

    def next(self, value: T) -> None:
        """Store a new value and notify listeners."""
        self._value = value
        self.emit(value)

    def subscribe(self, listener: Listener[T], emit_current: bool = True) -> Unsubscribe:
        unsubscribe = super().subscribe(listener)
        if emit_current:
            self._deliver(listener, self._value)
        return unsubscribe


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of the orchestrator's run state."""

    is_running: bool
    current_speaker_id: Optional[str]
    processed: int
    round_limit: int


class CancellationToken:
    """Cooperative cancellation token for an in-flight stream.

    Cancelling only sets a flag; the stream consumer checks it between
    chunks and wakes up promptly through :meth:`wait`.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = "cancelled"

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._event.is_set()

    def cancel(self, reason: Optional[str] = None) -> None:
        """Mark the token as cancelled with an optional reason."""
        if reason:
            self.reason = str(reason).strip() or self.reason
        self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()
