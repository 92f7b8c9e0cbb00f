# src/mindsender/social/message_feed.py

"""
In-process change feed for direct messages.

Subscribers register per receiver id and get called for every message
published after they subscribed. Best-effort only: there is no replay for
messages published while nobody listened, and a failing callback never
affects the sender or other subscribers.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable

from .social_models import DirectMessage

logger = logging.getLogger(__name__)

MessageCallback = Callable[[DirectMessage], None]


class MessageFeed:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[MessageCallback]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, receiver_id: str, callback: MessageCallback) -> Callable[[], None]:
        """Returns an unsubscribe function (idempotent)."""
        with self._lock:
            self._subscribers[receiver_id].append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(receiver_id)
                if callbacks and callback in callbacks:
                    callbacks.remove(callback)
                if callbacks is not None and not callbacks:
                    self._subscribers.pop(receiver_id, None)

        return _unsubscribe

    def subscriber_count(self, receiver_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(receiver_id, ()))

    def publish(self, message: DirectMessage) -> int:
        """Deliver to current subscribers of the receiver; returns how many were called."""
        with self._lock:
            callbacks = list(self._subscribers.get(message.receiver_id, ()))

        delivered = 0
        for cb in callbacks:
            try:
                cb(message)
                delivered += 1
            except Exception:
                logger.exception(
                    "Message subscriber failed receiver=%s message_id=%s",
                    message.receiver_id,
                    message.id,
                )
        return delivered
