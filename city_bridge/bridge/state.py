"""
Bridge State: the mailboxes shared by the HTTP layer and the host loop.

Holds one pending action-batch FIFO, the latest observation slot, a
bounded chat log, the advice inbox and the stream broadcaster. Nothing is
persisted; a restart clears everything.

Every operation is short and non-blocking and runs under a single lock,
so a batch is always handed out whole and FIFO order is preserved even
when handlers run on a threadpool.
"""

import logging
import threading
from collections import deque
from typing import Deque, List, Optional, Tuple

from city_bridge.bridge.ids import generate_id, now_ms
from city_bridge.bridge.streaming import StreamBroadcaster
from city_bridge.models.bridge import Advice, ChatMessage, MessageType
from city_bridge.models.intent import ActionBatch
from city_bridge.models.observation import Observation

logger = logging.getLogger("city_bridge.bridge.state")

MAX_MESSAGE_HISTORY = 100


class BridgeState:
    """In-process bridge context, injected into the API and the host loop."""

    def __init__(self, message_history_limit: int = MAX_MESSAGE_HISTORY):
        self._lock = threading.Lock()
        self._actions: Deque[ActionBatch] = deque()
        self._messages: Deque[ChatMessage] = deque(maxlen=message_history_limit)
        self._advice: List[Advice] = []
        self._observation: Optional[Observation] = None
        self._observation_at = 0
        self.stream = StreamBroadcaster()

    def __enter__(self) -> "BridgeState":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Drop subscribers and clear every mailbox."""
        self.stream.close()
        with self._lock:
            self._actions.clear()
            self._messages.clear()
            self._advice.clear()
            self._observation = None
            self._observation_at = 0
        logger.info("[BRIDGE] Bridge state closed")

    # --- Action queue ---

    def enqueue_batch(self, batch: ActionBatch) -> int:
        """Queue a batch and return the new queue length."""
        with self._lock:
            self._actions.append(batch)
            queued = len(self._actions)
        logger.info("[BRIDGE] Batch queued: %d actions, queue=%d", len(batch.actions), queued)
        return queued

    def dequeue_batch(self) -> Optional[ActionBatch]:
        """Take the oldest batch, or None when the queue is empty."""
        with self._lock:
            if not self._actions:
                return None
            return self._actions.popleft()

    def clear_queue(self) -> None:
        with self._lock:
            self._actions.clear()

    @property
    def queue_length(self) -> int:
        with self._lock:
            return len(self._actions)

    # --- Observation slot ---

    def set_latest_observation(self, observation: Observation) -> None:
        with self._lock:
            self._observation = observation
            self._observation_at = now_ms()

    def get_latest_observation(self) -> Tuple[Optional[Observation], int]:
        """The latest observation and when it was published (0 if never)."""
        with self._lock:
            return self._observation, self._observation_at

    # --- Chat log ---

    def add_message(self, message_type: MessageType, content: str) -> ChatMessage:
        message = ChatMessage(
            id=generate_id("msg"),
            at=now_ms(),
            type=message_type,
            content=content,
        )
        with self._lock:
            self._messages.append(message)
        return message

    def get_messages_since(self, since_id: Optional[str] = None) -> List[ChatMessage]:
        """Messages strictly after ``since_id``; everything if it is unknown."""
        with self._lock:
            messages = list(self._messages)
        if not since_id:
            return messages
        for index, message in enumerate(messages):
            if message.id == since_id:
                return messages[index + 1:]
        return messages

    # --- Advice inbox ---

    def add_advice(self, content: str) -> Advice:
        advice = Advice(id=generate_id("adv"), at=now_ms(), content=content)
        with self._lock:
            self._advice.append(advice)
        return advice

    def pop_unread_advice(self) -> List[Advice]:
        """Return unread advice and mark it read. A second call returns nothing new."""
        with self._lock:
            unread = [a for a in self._advice if not a.read]
            for advice in unread:
                advice.read = True
            return [a.model_copy() for a in unread]

    def get_all_advice(self) -> List[Advice]:
        with self._lock:
            return [a.model_copy() for a in self._advice]
