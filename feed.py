"""
Live order feed.

Subscribers get the full list of the most recent orders (newest first)
right away and again after every order change. Lists are replacements,
never deltas. Callbacks run on whichever thread published the change, so
subscribers that live on an event loop must hop back onto it themselves.
"""

import logging
import threading
from typing import Callable, Dict, List, Tuple

import config
from errors import RestaurantError, ValidationError
from schemas import Order

logger = logging.getLogger(__name__)

OrdersCallback = Callable[[List[Order]], None]
RecentOrdersLoader = Callable[[int], List[Order]]


class OrderFeed:
    def __init__(self, load_recent: RecentOrdersLoader):
        self._load_recent = load_recent
        self._lock = threading.Lock()
        # Held while a snapshot is loaded and handed out, so an older list never lands after a newer one
        self._delivery_lock = threading.RLock()
        self._subscribers: Dict[int, Tuple[OrdersCallback, int]] = {}
        self._next_token = 0

    def subscribe(self, callback: OrdersCallback, limit: int = config.RECENT_ORDERS_LIMIT) -> Callable[[], None]:
        """Register ``callback`` and return the function that removes it."""
        if limit < 1:
            raise ValidationError("Feed limit must be at least 1")
        with self._delivery_lock:
            snapshot = self._load_recent(limit)
            with self._lock:
                token = self._next_token
                self._next_token += 1
                self._subscribers[token] = (callback, limit)
            logger.debug("Order feed subscriber %s added (limit=%s)", token, limit)
            self._deliver(callback, snapshot)

        def unsubscribe() -> None:
            with self._lock:
                removed = self._subscribers.pop(token, None)
            if removed is not None:
                logger.debug("Order feed subscriber %s removed", token)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self) -> None:
        """Push a fresh snapshot to every subscriber."""
        with self._delivery_lock:
            with self._lock:
                subscribers = list(self._subscribers.values())
            if not subscribers:
                return
            try:
                orders = self._load_recent(max(limit for _, limit in subscribers))
            except RestaurantError:
                # The write that triggered this already succeeded; subscribers catch up on the next change.
                logger.exception("Could not load recent orders for the feed")
                return
            for callback, limit in subscribers:
                self._deliver(callback, orders[:limit])

    @staticmethod
    def _deliver(callback: OrdersCallback, orders: List[Order]) -> None:
        try:
            callback(orders)
        except Exception:
            logger.exception("Order feed subscriber failed")
