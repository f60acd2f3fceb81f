import asyncio
import logging
from typing import Callable, List, Optional

from ..models.state import FetchState, Idle, Success

Subscriber = Callable[[FetchState], None]


class StateChannel:
    """Published fetch state for one kind of content.

    Subscribers get the current state on subscription and every transition
    after it. ``request_id`` is the most recently triggered request; only
    that request may publish.
    """

    def __init__(self, name: str):
        self.name = name
        self.state: FetchState = Idle()
        self.last_success: Optional[Success] = None
        self.request_id = 0
        self.task: Optional[asyncio.Task] = None
        self.cache_key: Optional[str] = None
        self.last_trigger = None
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._subscribers.append(callback)
        callback(self.state)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def is_current(self, request_id: int) -> bool:
        return request_id == self.request_id

    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()

    def publish(self, state: FetchState) -> None:
        logging.debug(f"[{self.name}] {type(self.state).__name__} -> {type(state).__name__} "
                      f"(request {state.request_id})")
        self.state = state
        if isinstance(state, Success):
            self.last_success = state
        for callback in list(self._subscribers):
            callback(state)

    def cancel_pending(self) -> None:
        """Cancel the in-flight request, if any."""
        if self.in_flight():
            logging.debug(f"[{self.name}] Cancelling request {self.request_id}")
            self.task.cancel()
        self.task = None
        self.cache_key = None
