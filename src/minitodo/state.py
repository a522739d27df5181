from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


# PUBLIC_INTERFACE
class ObservableValue(Generic[T]):
    """
    A readable current value plus change notifications.

    - `set()` notifies listeners only when the new value differs from the current one.
    - `subscribe()` delivers the current value immediately, then every change.
    - `watch()` yields the current value, then the latest value after each change;
      changes that happen while the consumer is busy are collapsed into one.

    Values should be treated as immutable; replace them wholesale.
    Not thread-safe: use from the event loop thread.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._listeners: List[Callable[[T], None]] = []

    def __repr__(self) -> str:
        return f"ObservableValue({self._value!r})"

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        if value == self._value:
            return
        self._value = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("State listener %r failed", listener)

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register `listener`; returns a callable that unregisters it."""
        self._listeners.append(listener)
        listener(self._value)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def watch(self) -> AsyncIterator[T]:
        changed = asyncio.Event()
        unsubscribe = self.subscribe(lambda _value: changed.set())
        try:
            while True:
                changed.clear()
                yield self._value
                await changed.wait()
        finally:
            unsubscribe()
