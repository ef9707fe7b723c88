"""Emit events after a record has been written.

Each helper routes one kind of record to the channels that care about it and
returns the channel names it emitted to.
"""

from .events import (
    CommentEvent,
    EventRegistry,
    MessageEvent,
    NotificationEvent,
    PostEvent,
    ReactionEvent,
    topic_channel,
    user_channel,
)
from .events.models import Comment, Message, Notification, Post, PostRef, Reaction

DEFAULT_TOPIC = "general"


def _emit_all(registry: EventRegistry, channels: list[str], event) -> list[str]:
    for channel in channels:
        registry.emit(channel, event)
    return channels


def publish_message(registry: EventRegistry, message: Message) -> list[str]:
    """Sender and receiver both see the message."""
    channels = [user_channel(message.sender_id)]
    if message.receiver_id and message.receiver_id != message.sender_id:
        channels.append(user_channel(message.receiver_id))
    return _emit_all(registry, channels, MessageEvent(data=message))


def publish_post(registry: EventRegistry, post: Post) -> list[str]:
    channels = [topic_channel(post.topic or DEFAULT_TOPIC)]
    return _emit_all(registry, channels, PostEvent(data=post))


def publish_notification(registry: EventRegistry, notification: Notification) -> list[str]:
    channels = [user_channel(notification.user_id)]
    return _emit_all(registry, channels, NotificationEvent(data=notification))


def publish_reaction(
    registry: EventRegistry,
    reaction: Reaction,
    post: PostRef | None,
) -> list[str]:
    """Notify the post's author and the post's topic channel.

    Reactions on unknown posts are not broadcast.
    """
    if post is None:
        return []

    if reaction.post_id is None:
        reaction = reaction.model_copy(update={"post_id": post.id})

    channels = [user_channel(post.user_id), topic_channel(post.topic or DEFAULT_TOPIC)]
    return _emit_all(registry, channels, ReactionEvent(data=reaction))


def publish_comment(
    registry: EventRegistry,
    comment: Comment,
    post: PostRef | None,
) -> list[str]:
    if post is None:
        return []

    channels = [user_channel(post.user_id), topic_channel(post.topic or DEFAULT_TOPIC)]
    return _emit_all(registry, channels, CommentEvent(data=comment))
