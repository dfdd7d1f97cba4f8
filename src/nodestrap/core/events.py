"""In-process publish/subscribe bus between the controller and its host.

Commands from the presentation layer (``reload``, ``skip-update``,
``update``) and state notifications from the controller travel over
named channels. Handlers run synchronously on the publishing thread, in
the order they were registered.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List

from nodestrap.core.logging import get_logger

LOGGER = get_logger(__name__)

# Channel carrying StateEvent JSON documents to the presentation layer
STATE_CHANNEL = "state"

Handler = Callable[[Any], None]


class Command(str, Enum):
    """Commands the presentation layer can issue to the controller."""

    RELOAD = "reload"
    SKIP_UPDATE = "skip-update"
    UPDATE = "update"


class EventBus:
    """Thread-safe named channel registry.

    Publishing on a channel with no subscribers is a no-op. Within one
    channel a handler sees payloads in publish order; there is no ordering
    guarantee across channels.
    """

    def __init__(self) -> None:
        self._subs: Dict[str, List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, channel: str, handler: Handler) -> None:
        """Register ``handler`` for every later publish on ``channel``."""
        with self._lock:
            self._subs[channel].append(handler)
        LOGGER.debug(f"Subscribed {getattr(handler, '__name__', handler)!s} to '{channel}'")

    def publish(self, channel: str, payload: Any = "") -> int:
        """Deliver ``payload`` to every handler of ``channel``.

        A failing handler is logged and does not prevent delivery to the
        remaining handlers.

        Returns:
            Number of handlers the payload was delivered to.
        """
        with self._lock:
            handlers = list(self._subs.get(channel, ()))

        delivered = 0
        for handler in handlers:
            try:
                handler(payload)
                delivered += 1
            except Exception:
                LOGGER.exception(f"Handler for channel '{channel}' raised")
        return delivered

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subs.get(channel, ()))
