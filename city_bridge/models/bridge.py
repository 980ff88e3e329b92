"""Mailbox payloads exchanged between the agent, the host and the UI."""

from enum import Enum
from typing import Literal, Union

from city_bridge.models.world import WireModel


class MessageType(str, Enum):
    THINKING = "thinking"
    ACTION = "action"
    STATUS = "status"
    GREETING = "greeting"
    RESPONSE = "response"


class ChatMessage(WireModel):
    id: str
    at: int
    type: MessageType
    content: str


class Advice(WireModel):
    """A note from the player to the agent. Read at most once."""

    id: str
    at: int
    content: str
    read: bool = False


class StreamChunk(WireModel):
    id: str
    stream_id: str
    content: str
    at: int
    done: bool = False


class StreamMarker(WireModel):
    stream_id: str
    at: int


class StreamEvent(WireModel):
    type: Literal["start", "chunk", "end"]
    data: Union[StreamChunk, StreamMarker]

    def encode(self) -> str:
        """Server-sent-event frame for this event."""
        return f"data: {self.model_dump_json(by_alias=True)}\n\n"
