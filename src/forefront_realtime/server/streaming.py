"""Server-Sent Events bridge between the registry and client connections."""

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Iterable, Optional

from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from .events import ConnectedEvent, EventRegistry, PingEvent, RealtimeEvent, Subscription
from .events.registry import topic_channel, user_channel

logger = logging.getLogger(__name__)

DEFAULT_PING_INTERVAL = 30.0  # seconds

# Keep proxies from buffering or caching the stream
SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_CLOSE = object()


class MissingUserError(ValueError):
    """A stream was requested without a user id."""


class BridgeState(str, Enum):
    """Connection lifecycle."""
    OPENING = "opening"
    ESTABLISHED = "established"
    STREAMING = "streaming"
    CLOSED = "closed"


def parse_topics(raw: str | None) -> list[str]:
    """Split a comma-separated topic list, dropping blanks and repeats."""
    if not raw:
        return []

    topics: list[str] = []
    for part in raw.split(","):
        topic = part.strip()
        if topic and topic not in topics:
            topics.append(topic)
    return topics


def format_sse(event: RealtimeEvent) -> str:
    """Frame an event as an SSE data line."""
    return f"data: {event.to_json()}\n\n"


class StreamingBridge:
    """Bridges one client connection to the registry.

    Subscribes the user's channel plus one channel per topic, turns every
    delivered event into an SSE frame and interleaves keep-alive pings.
    ``close()`` releases every subscription; it runs on every way out of
    ``events()``.
    """

    def __init__(
        self,
        registry: EventRegistry,
        user_id: str | None,
        topics: Iterable[str] = (),
        ping_interval: float = DEFAULT_PING_INTERVAL,
    ):
        if not user_id:
            raise MissingUserError("Missing userId")

        self.registry = registry
        self.user_id = user_id
        self.topics = list(topics)
        self.ping_interval = ping_interval
        self.state = BridgeState.OPENING

        self._subscriptions: list[Subscription] = []
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def channels(self) -> list[str]:
        return [user_channel(self.user_id)] + [topic_channel(t) for t in self.topics]

    @property
    def closed(self) -> bool:
        return self.state == BridgeState.CLOSED

    async def events(self) -> AsyncIterator[str]:
        """Yield SSE frames until the connection closes.

        The first frame is always ``connected``; subscriptions are in place
        before it is sent, so nothing emitted after the client sees it is
        missed.
        """
        if self.closed:
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()

        try:
            self._open()
            yield format_sse(ConnectedEvent())
            self.state = BridgeState.STREAMING

            next_ping = self._loop.time() + self.ping_interval
            while not self.closed:
                timeout = next_ping - self._loop.time()
                if timeout <= 0:
                    yield format_sse(PingEvent())
                    next_ping = self._loop.time() + self.ping_interval
                    continue

                try:
                    item = await asyncio.wait_for(self._queue.get(), timeout)
                except asyncio.TimeoutError:
                    continue

                if item is _CLOSE:
                    break
                yield format_sse(item)
        finally:
            self.close()

    def close(self) -> None:
        """Release all subscriptions and end the stream. Idempotent."""
        if self.closed:
            return
        self.state = BridgeState.CLOSED

        for subscription in self._subscriptions:
            subscription.release()
        self._subscriptions.clear()

        self._enqueue(_CLOSE)
        logger.info(f"Stream closed for user {self.user_id}")

    def _open(self) -> None:
        if self.closed:
            return
        for channel in self.channels:
            self._subscriptions.append(self.registry.subscribe(channel, self._deliver))
        self.state = BridgeState.ESTABLISHED
        logger.info(f"Stream opened for user {self.user_id} ({len(self.topics)} topics)")

    def _deliver(self, event: RealtimeEvent) -> None:
        """Registry callback: hand the event to the streaming task."""
        if not self.closed:
            self._enqueue(event)

    def _enqueue(self, item) -> None:
        if self._loop is None or self._queue is None:
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._queue.put_nowait(item)
        elif not self._loop.is_closed():
            # Emitted from a worker thread
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)


class ConnectionTracker:
    """Live streaming connections for this process."""

    def __init__(self):
        self._bridges: set[StreamingBridge] = set()

    def add(self, bridge: StreamingBridge) -> None:
        self._bridges.add(bridge)

    def discard(self, bridge: StreamingBridge) -> None:
        self._bridges.discard(bridge)

    @property
    def count(self) -> int:
        return len(self._bridges)

    def close_all(self) -> None:
        """Close every live connection (server shutdown)."""
        for bridge in list(self._bridges):
            bridge.close()
        self._bridges.clear()


class EventStreamResponse(StreamingResponse):
    """Streams a bridge's frames and closes the bridge however the response ends."""

    def __init__(self, bridge: StreamingBridge, tracker: ConnectionTracker | None = None):
        super().__init__(
            bridge.events(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )
        self.bridge = bridge
        self.tracker = tracker
        if tracker is not None:
            tracker.add(bridge)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.bridge.close()
            if self.tracker is not None:
                self.tracker.discard(self.bridge)
