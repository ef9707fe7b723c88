"""Minimal client for the event stream, used by ``ffrt listen``."""

import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Callable, Iterable, Iterator, Optional

from .server.events import EventType, RealtimeEvent, parse_event

logger = logging.getLogger(__name__)

RECONNECT_BASE = 1.0  # seconds
RECONNECT_CAP = 30.0


def reconnect_delay(attempt: int, base: float = RECONNECT_BASE, cap: float = RECONNECT_CAP) -> float:
    """Exponential backoff: 1s, 2s, 4s, 8s ... capped at 30s."""
    return min(base * (2 ** attempt), cap)


def stream_url(base_url: str, user_id: str, channels: Iterable[str] = ()) -> str:
    params = {"userId": user_id}
    channels = [c for c in channels if c]
    if channels:
        params["channels"] = ",".join(channels)
    return f"{base_url.rstrip('/')}/api/realtime?{urllib.parse.urlencode(params)}"


def iter_sse_data(lines: Iterable[str]) -> Iterator[str]:
    """Yield the data payload of each SSE frame.

    Multi-line ``data:`` fields are joined with newlines; comments and other
    fields are ignored.
    """
    buffer: list[str] = []
    for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if buffer:
                yield "\n".join(buffer)
                buffer = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            buffer.append(value[1:] if value.startswith(" ") else value)

    if buffer:
        yield "\n".join(buffer)


def iter_events(lines: Iterable[str], include_pings: bool = False) -> Iterator[RealtimeEvent]:
    """Parse frames into events, skipping ones that fail to parse."""
    for data in iter_sse_data(lines):
        try:
            event = parse_event(data)
        except ValueError:
            logger.warning(f"Skipping malformed event: {data[:200]}")
            continue
        if event.type == EventType.PING and not include_pings:
            continue
        yield event


def _read_lines(response) -> Iterator[str]:
    for raw in response:
        yield raw.decode("utf-8")


def listen(
    url: str,
    on_event: Callable[[RealtimeEvent], None],
    max_attempts: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Consume the stream, reconnecting with backoff until interrupted.

    ``max_attempts`` bounds consecutive failed connections; a successful
    connection resets the count.
    """
    attempt = 0
    while True:
        try:
            request = urllib.request.Request(url, headers={"Accept": "text/event-stream"})
            with urllib.request.urlopen(request) as response:
                attempt = 0
                for event in iter_events(_read_lines(response)):
                    on_event(event)
            logger.info("Stream ended by server")
        except urllib.error.HTTPError as e:
            if 400 <= e.code < 500:
                raise
            logger.warning(f"Stream error: HTTP {e.code}")
        except (urllib.error.URLError, OSError) as e:
            logger.warning(f"Stream error: {e}")

        if max_attempts is not None and attempt >= max_attempts:
            raise ConnectionError(f"Gave up after {attempt} reconnect attempts")

        delay = reconnect_delay(attempt)
        attempt += 1
        logger.info(f"Reconnecting in {delay:.0f}s (attempt {attempt})")
        sleep(delay)


def format_event(event: RealtimeEvent) -> str:
    """One-line rendering for terminals."""
    payload = event.model_dump(mode="json", by_alias=True, exclude={"type"})
    return f"{event.type:<12} {json.dumps(payload, separators=(',', ':'))}"
