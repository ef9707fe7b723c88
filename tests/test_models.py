"""Tests for the typed event variants and their wire format."""

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from forefront_realtime.server.events import (
    CommentEvent,
    ConnectedEvent,
    EventType,
    MessageEvent,
    NotificationEvent,
    PingEvent,
    PostEvent,
    ReactionEvent,
    parse_event,
)
from forefront_realtime.server.events.models import Message, Post, now_ms


class TestParseEvent:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ({"type": "message", "data": {"id": 1, "senderId": "u1", "content": "hi"}}, MessageEvent),
            ({"type": "post", "data": {"id": 1, "userId": "u1", "content": "hi"}}, PostEvent),
            (
                {"type": "notification", "data": {"id": 1, "userId": "u1", "type": "like", "content": "hi"}},
                NotificationEvent,
            ),
            ({"type": "reaction", "data": {"id": 1, "userId": "u1", "emoji": "+1"}}, ReactionEvent),
            ({"type": "comment", "data": {"id": 1, "userId": "u1", "postId": 3, "content": "hi"}}, CommentEvent),
            ({"type": "connected", "timestamp": 1700000000000}, ConnectedEvent),
            ({"type": "ping", "timestamp": 1700000000000}, PingEvent),
        ],
    )
    def test_each_kind(self, raw, expected):
        event = parse_event(raw)
        assert isinstance(event, expected)
        assert event.type == raw["type"]

    def test_from_json(self):
        event = parse_event('{"type":"ping","timestamp":5}')
        assert isinstance(event, PingEvent)
        assert event.timestamp == 5

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"type": "typing", "data": {}})

    def test_payload_is_typed(self):
        with pytest.raises(ValidationError):
            parse_event({"type": "message", "data": {"id": 1}})

    def test_post_requires_author_and_content(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_event({"type": "post", "data": {"id": 1}})

        missing = {error["loc"][-1] for error in exc_info.value.errors()}
        assert missing == {"userId", "content"}


class TestWireFormat:
    def test_camel_case_fields(self):
        created = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        event = MessageEvent(
            data=Message(id="m1", sender_id="u1", receiver_id="u2", content="hi", created_at=created)
        )

        wire = json.loads(event.to_json())
        assert wire["type"] == "message"
        assert wire["data"]["senderId"] == "u1"
        assert wire["data"]["receiverId"] == "u2"
        assert wire["data"]["createdAt"].startswith("2025-01-02T03:04:05")

    def test_extra_record_fields_are_kept(self):
        event = parse_event(
            {"type": "post", "data": {"id": 7, "userId": "u1", "content": "hi", "likes": 3}}
        )
        wire = json.loads(event.to_json())
        assert wire["data"]["likes"] == 3
        assert wire["data"]["id"] == 7

    def test_to_json_is_compact(self):
        assert " " not in PingEvent(timestamp=1).to_json()

    def test_stream_events_carry_timestamp(self):
        before = now_ms()
        event = ConnectedEvent()
        assert before <= event.timestamp <= now_ms()

    def test_events_are_immutable(self):
        event = PostEvent(data=Post(id=1, user_id="u1", content="hi"))
        with pytest.raises(ValidationError):
            event.data = Post(id=2, user_id="u1", content="changed")

    def test_event_type_enum_matches_tags(self):
        assert {t.value for t in EventType} == {
            "message", "post", "notification", "reaction", "comment", "connected", "ping",
        }
