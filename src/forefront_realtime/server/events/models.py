"""Typed real-time events.

Every event on the wire is a JSON object with a ``type`` tag. Application
events (``message``, ``post``, ``notification``, ``reaction``, ``comment``)
carry a ``data`` record; the stream's own ``connected`` and ``ping`` frames
carry a ``timestamp`` in epoch milliseconds.
"""

import time
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class EventType(str, Enum):
    """Event types."""
    MESSAGE = "message"
    POST = "post"
    NOTIFICATION = "notification"
    REACTION = "reaction"
    COMMENT = "comment"

    # Stream control
    CONNECTED = "connected"
    PING = "ping"


def now_ms() -> int:
    """Current server time in milliseconds since the epoch."""
    return int(time.time() * 1000)


# =============================================================================
# Payload records
# =============================================================================

class Record(BaseModel):
    """Base for event payloads.

    Fields are camelCase on the wire. Extra fields are kept so a database row
    can be published as-is.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    id: str | int
    created_at: datetime | None = None


class Message(Record):
    """A direct message between two users."""
    sender_id: str
    receiver_id: str | None = None
    content: str


class Post(Record):
    """A post in a topic channel. No topic means the general channel."""
    user_id: str
    content: str
    topic: str | None = None


class Notification(Record):
    """A notification addressed to one user."""
    user_id: str
    type: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    read: bool = False


class Reaction(Record):
    """A reaction left on a post."""
    user_id: str
    post_id: str | int | None = None
    emoji: str


class Comment(Record):
    """A comment on a post."""
    user_id: str
    post_id: str | int
    content: str


class PostRef(BaseModel):
    """The parts of a post needed to route reactions and comments."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str | int
    user_id: str
    topic: str | None = None


# =============================================================================
# Event variants
# =============================================================================

class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_json(self) -> str:
        """Compact JSON for the wire."""
        return self.model_dump_json(by_alias=True)


class MessageEvent(_Event):
    type: Literal["message"] = "message"
    data: Message


class PostEvent(_Event):
    type: Literal["post"] = "post"
    data: Post


class NotificationEvent(_Event):
    type: Literal["notification"] = "notification"
    data: Notification


class ReactionEvent(_Event):
    type: Literal["reaction"] = "reaction"
    data: Reaction


class CommentEvent(_Event):
    type: Literal["comment"] = "comment"
    data: Comment


class ConnectedEvent(_Event):
    type: Literal["connected"] = "connected"
    timestamp: int = Field(default_factory=now_ms)


class PingEvent(_Event):
    type: Literal["ping"] = "ping"
    timestamp: int = Field(default_factory=now_ms)


RealtimeEvent = Annotated[
    Union[
        MessageEvent,
        PostEvent,
        NotificationEvent,
        ReactionEvent,
        CommentEvent,
        ConnectedEvent,
        PingEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[RealtimeEvent] = TypeAdapter(RealtimeEvent)


def parse_event(raw: dict[str, Any] | str | bytes) -> RealtimeEvent:
    """Validate a mapping or a JSON document into its event variant."""
    if isinstance(raw, (str, bytes)):
        return _event_adapter.validate_json(raw)
    return _event_adapter.validate_python(raw)
