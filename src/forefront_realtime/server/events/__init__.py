"""Real-time events and the channel registry that fans them out."""

from .models import (
    CommentEvent,
    ConnectedEvent,
    EventType,
    MessageEvent,
    NotificationEvent,
    PingEvent,
    PostEvent,
    ReactionEvent,
    RealtimeEvent,
    parse_event,
)
from .registry import EventRegistry, Subscription, topic_channel, user_channel

__all__ = [
    "EventRegistry",
    "Subscription",
    "user_channel",
    "topic_channel",
    "EventType",
    "RealtimeEvent",
    "MessageEvent",
    "PostEvent",
    "NotificationEvent",
    "ReactionEvent",
    "CommentEvent",
    "ConnectedEvent",
    "PingEvent",
    "parse_event",
]
