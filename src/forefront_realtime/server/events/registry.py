"""Channel registry with synchronous fan-out to subscribers."""

import logging
import threading
from typing import Any, Callable

from .models import RealtimeEvent

logger = logging.getLogger(__name__)

Callback = Callable[[RealtimeEvent], Any]


def user_channel(user_id: str) -> str:
    """Channel carrying events for one user."""
    return f"user:{user_id}"


def topic_channel(topic: str) -> str:
    """Channel carrying events for one topic room."""
    return f"channel:{topic}"


class Subscription:
    """Handle for a single (channel, callback) registration.

    ``release()`` removes the registration and is safe to call more than
    once. Also usable as a context manager.
    """

    def __init__(self, registry: "EventRegistry", channel: str, callback: Callback):
        self.registry = registry
        self.channel = channel
        self.callback = callback
        self._released = False

    @property
    def active(self) -> bool:
        return not self._released and self.registry.is_subscribed(self.channel, self.callback)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.registry.unsubscribe(self.channel, self.callback)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"Subscription(channel={self.channel!r}, active={self.active})"


class EventRegistry:
    """Maps channel names to subscriber callbacks.

    Created once per application and handed to request handlers. Emission is
    fire-and-forget: the producer never learns who received an event, and a
    failing callback is logged without affecting the other subscribers.
    """

    def __init__(self):
        # dict keys keep insertion order and give set semantics
        self._channels: dict[str, dict[Callback, None]] = {}
        self._lock = threading.Lock()

    def subscribe(self, channel: str, callback: Callback) -> Subscription:
        """Register a callback for a channel. Re-registering is a no-op."""
        with self._lock:
            subscribers = self._channels.setdefault(channel, {})
            added = callback not in subscribers
            if added:
                subscribers[callback] = None

        if added:
            logger.debug(f"Subscribed to {channel}")
        return Subscription(self, channel, callback)

    def unsubscribe(self, channel: str, callback: Callback) -> None:
        """Remove a callback from a channel if it is registered."""
        with self._lock:
            subscribers = self._channels.get(channel)
            if not subscribers or callback not in subscribers:
                return
            del subscribers[callback]
            if not subscribers:
                del self._channels[channel]

        logger.debug(f"Unsubscribed from {channel}")

    def emit(self, channel: str, event: RealtimeEvent) -> None:
        """Deliver an event to every current subscriber of a channel."""
        with self._lock:
            subscribers = list(self._channels.get(channel, ()))

        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Error in subscriber for {channel} ({event.type} event)")

    # Convenience wrappers

    def subscribe_to_user(self, user_id: str, callback: Callback) -> Subscription:
        return self.subscribe(user_channel(user_id), callback)

    def unsubscribe_from_user(self, user_id: str, callback: Callback) -> None:
        self.unsubscribe(user_channel(user_id), callback)

    def subscribe_to_channel(self, topic: str, callback: Callback) -> Subscription:
        return self.subscribe(topic_channel(topic), callback)

    def unsubscribe_from_channel(self, topic: str, callback: Callback) -> None:
        self.unsubscribe(topic_channel(topic), callback)

    def emit_to_user(self, user_id: str, event: RealtimeEvent) -> None:
        self.emit(user_channel(user_id), event)

    def emit_to_channel(self, topic: str, event: RealtimeEvent) -> None:
        self.emit(topic_channel(topic), event)

    # Introspection

    def is_subscribed(self, channel: str, callback: Callback) -> bool:
        with self._lock:
            return callback in self._channels.get(channel, ())

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._channels.get(channel, ()))

    def channels(self) -> list[str]:
        """Channels that currently have at least one subscriber."""
        with self._lock:
            return list(self._channels)

    def stats(self) -> dict:
        with self._lock:
            by_channel = {name: len(subs) for name, subs in self._channels.items()}
        return {
            "channels": len(by_channel),
            "subscriptions": sum(by_channel.values()),
            "by_channel": by_channel,
        }
