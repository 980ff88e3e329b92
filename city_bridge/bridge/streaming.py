"""
Stream Broadcaster: fan-out of short text chunks to live subscribers.

Behavioral Contract:
- At-most-once delivery. A subscriber that is not registered when a
  chunk is pushed never sees it, and nothing is buffered for later.
- Exactly one stream is open at a time. It starts on the first push when
  none is open, or when the caller names a different stream id, and ends
  on a push with done=True.
- A sink that fails to accept a write is skipped silently. Cleanup is the
  subscriber's own job, via unregister.
"""

import logging
import threading
from typing import Callable, Dict, Optional, Tuple

from city_bridge.bridge.ids import generate_id, now_ms
from city_bridge.models.bridge import StreamChunk, StreamEvent, StreamMarker

logger = logging.getLogger("city_bridge.bridge.streaming")

Sink = Callable[[str], None]


class StreamBroadcaster:
    """Registry of subscriber sinks plus the state of the open stream."""

    def __init__(self):
        self._lock = threading.RLock()
        self._subscribers: Dict[str, Sink] = {}
        self._stream_id: Optional[str] = None
        self._buffer = ""

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def register(self, sink: Sink) -> str:
        """Add a sink and return its subscriber id."""
        subscriber_id = generate_id("client")
        with self._lock:
            self._subscribers[subscriber_id] = sink
        logger.info("[STREAM] Subscriber connected: %s", subscriber_id)
        return subscriber_id

    def unregister(self, subscriber_id: str) -> None:
        """Remove a sink. Unknown ids are ignored."""
        with self._lock:
            removed = self._subscribers.pop(subscriber_id, None)
        if removed is not None:
            logger.info("[STREAM] Subscriber disconnected: %s", subscriber_id)

    def current_state(self) -> Tuple[Optional[str], str]:
        """The open stream id (None between streams) and the accumulated text."""
        with self._lock:
            return self._stream_id, self._buffer

    def push(
        self, content: str, done: bool = False, stream_id: Optional[str] = None
    ) -> Tuple[str, str]:
        """Append ``content`` to the open stream and broadcast it."""
        events = []
        with self._lock:
            if self._stream_id is None or (stream_id and stream_id != self._stream_id):
                self._stream_id = stream_id or generate_id("stream")
                self._buffer = ""
                events.append(StreamEvent(
                    type="start",
                    data=StreamMarker(stream_id=self._stream_id, at=now_ms()),
                ))

            chunk = StreamChunk(
                id=generate_id("chunk"),
                stream_id=self._stream_id,
                content=content,
                at=now_ms(),
                done=done,
            )
            self._buffer += content
            events.append(StreamEvent(type="chunk", data=chunk))

            if done:
                events.append(StreamEvent(
                    type="end",
                    data=StreamMarker(stream_id=chunk.stream_id, at=now_ms()),
                ))
                self._stream_id = None

            # Fan out under the lock so concurrent pushes never interleave.
            # Sinks must not block: a slow one stalls every other push.
            for event in events:
                self.broadcast(event)
        return chunk.stream_id, chunk.id

    def broadcast(self, event: StreamEvent) -> int:
        """Write one event to every registered sink. Returns the delivered count."""
        frame = event.encode()
        with self._lock:
            sinks = list(self._subscribers.items())

        delivered = 0
        for subscriber_id, sink in sinks:
            try:
                sink(frame)
                delivered += 1
            except Exception as e:
                logger.debug("[STREAM] Write to %s failed: %s", subscriber_id, e)
        return delivered

    def close(self) -> None:
        """Drop every subscriber and forget the open stream."""
        with self._lock:
            self._subscribers.clear()
            self._stream_id = None
            self._buffer = ""
