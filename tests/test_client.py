"""Tests for the stream client used by ``ffrt listen``."""

import urllib.error
import urllib.request

import pytest

from forefront_realtime.client import (
    format_event,
    iter_events,
    iter_sse_data,
    listen,
    reconnect_delay,
    stream_url,
)
from forefront_realtime.server.events import PingEvent


class FakeResponse:
    def __init__(self, lines):
        self.lines = [line.encode() for line in lines]

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def __iter__(self):
        return iter(self.lines)


STREAM = [
    'data: {"type":"connected","timestamp":1}\n',
    "\n",
    ": comment line\n",
    'data: {"type":"ping","timestamp":2}\n',
    "\n",
    'data: {"type":"post","data":{"id":1,"userId":"u1","content":"hi"}}\n',
    "\n",
]


def test_reconnect_delay_backoff():
    assert [reconnect_delay(n) for n in range(7)] == [1, 2, 4, 8, 16, 30, 30]


def test_stream_url():
    url = stream_url("http://localhost:8420/", "u1", ["a", "b"])
    assert url == "http://localhost:8420/api/realtime?userId=u1&channels=a%2Cb"
    assert stream_url("http://h", "u1") == "http://h/api/realtime?userId=u1"


class TestParsing:
    def test_data_frames(self):
        frames = list(iter_sse_data(STREAM))
        assert len(frames) == 3
        assert frames[0] == '{"type":"connected","timestamp":1}'

    def test_multiline_data_joined(self):
        assert list(iter_sse_data(["data: a\n", "data: b\n", "\n"])) == ["a\nb"]

    def test_trailing_frame_without_blank_line(self):
        assert list(iter_sse_data(["data: x"])) == ["x"]

    def test_events_skip_pings(self):
        kinds = [event.type for event in iter_events(STREAM)]
        assert kinds == ["connected", "post"]

    def test_events_with_pings(self):
        kinds = [event.type for event in iter_events(STREAM, include_pings=True)]
        assert kinds == ["connected", "ping", "post"]

    def test_malformed_frames_skipped(self):
        lines = ["data: not json\n", "\n", 'data: {"type":"ping","timestamp":3}\n', "\n"]
        assert len(list(iter_events(lines, include_pings=True))) == 1


def test_format_event():
    line = format_event(PingEvent(timestamp=9))
    assert line.startswith("ping")
    assert line.endswith('{"timestamp":9}')


class TestListen:
    def test_delivers_then_gives_up(self, monkeypatch):
        calls = []

        def fake_urlopen(request):
            calls.append(request.full_url)
            if len(calls) == 1:
                return FakeResponse(STREAM)
            raise urllib.error.URLError("connection refused")

        monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
        received, sleeps = [], []

        with pytest.raises(ConnectionError):
            listen("http://h/api/realtime?userId=u1", received.append, max_attempts=2, sleep=sleeps.append)

        assert [event.type for event in received] == ["connected", "post"]
        # reconnect after the stream ended, then back off until the limit
        assert sleeps == [1, 2]
        assert len(calls) == 3

    def test_client_error_is_not_retried(self, monkeypatch):
        def fake_urlopen(request):
            raise urllib.error.HTTPError(request.full_url, 400, "Missing userId", hdrs=None, fp=None)

        monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

        with pytest.raises(urllib.error.HTTPError):
            listen("http://h/api/realtime", lambda event: None, sleep=lambda s: None)

    def test_server_error_is_retried(self, monkeypatch):
        attempts = []

        def fake_urlopen(request):
            attempts.append(1)
            raise urllib.error.HTTPError(request.full_url, 503, "Unavailable", hdrs=None, fp=None)

        monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

        with pytest.raises(ConnectionError):
            listen("http://h/api/realtime?userId=u1", lambda event: None, max_attempts=1, sleep=lambda s: None)
        assert len(attempts) == 2
