"""
Observer Pattern

Core components publish change notifications through a Subject;
the UI layer subscribes and re-reads immutable snapshots.

Every subscription is an explicit object. Owners keep the handles
they create in a SubscriptionGroup and release them all on teardown.
"""

from typing import Callable, Dict, Generic, List, TypeVar
import itertools
import logging
import threading

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle for a single registered callback."""

    def __init__(self, subject: "Subject", sub_id: int, owner: object = None):
        self._subject = subject
        self._sub_id = sub_id
        self.owner = owner

    @property
    def active(self) -> bool:
        return self._subject is not None and self._subject.has_subscription(self._sub_id)

    def cancel(self) -> None:
        """Remove the callback. Safe to call more than once."""
        if self._subject is not None:
            self._subject.unsubscribe(self._sub_id)
            self._subject = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cancel()


class Subject(Generic[T]):
    """
    Distributes values to subscribed callbacks.

    Callbacks run on the notifying thread. A failing callback is logged
    and does not prevent delivery to the others.
    """

    _ids = itertools.count(1)

    def __init__(self, name: str = ""):
        self.name = name
        self._callbacks: Dict[int, Callable[[T], None]] = {}
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[T], None], owner: object = None) -> Subscription:
        """
        Subscribe a callback.

        Args:
            callback: Function called with each notified value
            owner: Object whose lifetime bounds the subscription

        Returns:
            Subscription handle used to unsubscribe
        """
        sub_id = next(self._ids)
        with self._lock:
            self._callbacks[sub_id] = callback
        logger.debug(f"Added subscription {sub_id} to '{self.name}'")
        return Subscription(self, sub_id, owner)

    def unsubscribe(self, sub_id: int) -> None:
        with self._lock:
            if self._callbacks.pop(sub_id, None) is not None:
                logger.debug(f"Removed subscription {sub_id} from '{self.name}'")

    def has_subscription(self, sub_id: int) -> bool:
        with self._lock:
            return sub_id in self._callbacks

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def notify(self, value: T) -> None:
        """Deliver a value to every subscriber."""
        with self._lock:
            callbacks = list(self._callbacks.items())

        for sub_id, callback in callbacks:
            try:
                callback(value)
            except Exception as e:
                logger.error(f"Error in '{self.name}' subscription {sub_id}: {e}")


class SubscriptionGroup:
    """Subscriptions owned by one object, released together."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def add(self, subscription: Subscription) -> Subscription:
        self._subscriptions.append(subscription)
        return subscription

    def __len__(self) -> int:
        return len(self._subscriptions)

    def cancel_all(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cancel_all()
