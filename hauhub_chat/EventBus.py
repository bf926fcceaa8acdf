"""Publish/subscribe event bus decoupling chat logic from its presentation.

The dispatcher, composer, uploader and group switcher publish events; views
(ConsoleView, tests) subscribe to the topics they care about. Nothing in the
chat logic touches a renderer directly.

Topics:
    message_added       ChatMessage appended to the active history
    message_updated     ChatMessage whose status/id changed (confirm, fail, retry)
    history_loaded      ChatRoom after a group switch loaded its data
    member_updated      Member whose online flag changed
    file_added          FileInfo appended to the file grid
    typing              TypingFrame from another member
    notification        Notification for the user
    group_switched      GroupInfo that became active
    connection_state    (old_state, new_state) tuple
"""

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]


class EventBus:
    """Manages subscribers per topic and publishes events to them.

    Thread Safety:
        - Subscription management uses a lock for thread-safe registration
        - Subscriber list is copied before iteration (lock released during callbacks)

    Error Handling:
        - Each subscriber call is wrapped in try-except
        - Exceptions are logged and don't affect other subscribers

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe("notification", view.show_notification)
        >>> bus.publish("notification", Notification("info", "hello"))
    """

    def __init__(self, verbose: bool = False) -> None:
        self._subscribers: dict[str, list[Subscriber]] = {}
        self._lock = threading.Lock()
        self._verbose = verbose

    def subscribe(self, topic: str, callback: Subscriber) -> None:
        """Register a callback for a topic.

        Idempotent - registering the same callback twice for a topic has no
        additional effect.
        """
        with self._lock:
            callbacks = self._subscribers.setdefault(topic, [])
            if callback not in callbacks:
                callbacks.append(callback)
                if self._verbose:
                    logger.info("EventBus: subscriber registered for %r", topic)

    def unsubscribe(self, topic: str, callback: Subscriber) -> None:
        """Unregister a callback. Unknown callbacks are a no-op."""
        with self._lock:
            callbacks = self._subscribers.get(topic, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, []))

    def publish(self, topic: str, payload: Any = None) -> None:
        """Deliver payload to every subscriber of topic.

        Args:
            topic: Event topic name.
            payload: Event payload passed as the single callback argument.
        """
        with self._lock:
            callbacks = list(self._subscribers.get(topic, []))

        for callback in callbacks:
            try:
                callback(payload)
            except Exception:
                logger.exception("EventBus: subscriber for %r failed", topic)
