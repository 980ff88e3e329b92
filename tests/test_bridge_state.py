"""Tests for the bridge mailboxes."""

import json
import threading
import time

import pytest

from city_bridge.bridge.state import BridgeState
from city_bridge.bridge.streaming import StreamBroadcaster
from city_bridge.models.bridge import MessageType
from city_bridge.models.intent import ActionBatch
from city_bridge.models.observation import Observation


def _batch(rate: int) -> ActionBatch:
    return ActionBatch.model_validate({"actions": [{"type": "setTaxRate", "rate": rate}]})


def _observation(tick: int) -> Observation:
    return Observation.model_validate({
        "apiVersion": 1,
        "at": 1,
        "city": {"id": "c", "name": "n"},
        "time": {"tick": tick},
        "grid": {"size": 8},
    })


def _events(frames):
    return [json.loads(frame[len("data: "):]) for frame in frames]


@pytest.fixture
def bridge():
    return BridgeState()


class TestActionQueue:
    def test_fifo_whole_batches(self, bridge):
        a, b = _batch(1), _batch(2)
        assert bridge.enqueue_batch(a) == 1
        assert bridge.enqueue_batch(b) == 2
        assert bridge.dequeue_batch() == a
        assert bridge.dequeue_batch() == b
        assert bridge.dequeue_batch() is None

    def test_clear_queue(self, bridge):
        bridge.enqueue_batch(_batch(1))
        bridge.clear_queue()
        assert bridge.queue_length == 0


class TestObservationSlot:
    def test_empty_until_published(self, bridge):
        observation, at = bridge.get_latest_observation()
        assert observation is None
        assert at == 0

    def test_latest_overwrites(self, bridge):
        bridge.set_latest_observation(_observation(1))
        bridge.set_latest_observation(_observation(2))
        observation, at = bridge.get_latest_observation()
        assert observation.time.tick == 2
        assert at > 0


class TestChatLog:
    def test_ring_bounded_and_evicts_oldest(self, bridge):
        messages = [bridge.add_message(MessageType.STATUS, f"m{i}") for i in range(105)]
        history = bridge.get_messages_since()
        assert len(history) == 100
        assert history[0].id == messages[5].id
        assert history[-1].id == messages[-1].id

    def test_messages_since(self, bridge):
        first = bridge.add_message(MessageType.GREETING, "hello")
        second = bridge.add_message(MessageType.THINKING, "hmm")
        third = bridge.add_message(MessageType.ACTION, "zoning")
        assert [m.id for m in bridge.get_messages_since(first.id)] == [second.id, third.id]
        assert bridge.get_messages_since(third.id) == []

    def test_unknown_since_returns_everything(self, bridge):
        bridge.add_message(MessageType.STATUS, "a")
        bridge.add_message(MessageType.STATUS, "b")
        assert len(bridge.get_messages_since("msg_gone")) == 2

    def test_custom_history_limit(self):
        bridge = BridgeState(message_history_limit=3)
        for i in range(5):
            bridge.add_message(MessageType.STATUS, str(i))
        assert [m.content for m in bridge.get_messages_since()] == ["2", "3", "4"]


class TestAdvice:
    def test_destructive_read(self, bridge):
        bridge.add_advice("build a school")
        first = bridge.pop_unread_advice()
        second = bridge.pop_unread_advice()
        assert [a.content for a in first] == ["build a school"]
        assert second == []

    def test_only_new_advice_returned(self, bridge):
        bridge.add_advice("one")
        bridge.pop_unread_advice()
        bridge.add_advice("two")
        assert [a.content for a in bridge.pop_unread_advice()] == ["two"]
        assert [a.read for a in bridge.get_all_advice()] == [True, True]


class TestClose:
    def test_close_clears_everything(self):
        with BridgeState() as bridge:
            bridge.enqueue_batch(_batch(1))
            bridge.add_message(MessageType.STATUS, "x")
            bridge.add_advice("y")
            bridge.set_latest_observation(_observation(1))
            bridge.stream.register(lambda frame: None)
        assert bridge.queue_length == 0
        assert bridge.get_messages_since() == []
        assert bridge.get_all_advice() == []
        assert bridge.get_latest_observation() == (None, 0)
        assert bridge.stream.subscriber_count == 0


class TestStreamBroadcaster:
    def test_hello_world_stream(self):
        stream = StreamBroadcaster()
        frames = []
        stream.register(frames.append)

        first_id, _ = stream.push("Hello", False)
        second_id, _ = stream.push(" world", True)

        events = _events(frames)
        assert [e["type"] for e in events] == ["start", "chunk", "chunk", "end"]
        assert first_id == second_id
        assert {e["data"]["streamId"] for e in events} == {first_id}
        assert events[1]["data"]["content"] == "Hello"
        assert events[2]["data"]["done"] is True
        assert stream.current_state() == (None, "Hello world")

    def test_next_push_after_end_starts_fresh(self):
        stream = StreamBroadcaster()
        frames = []
        stream.register(frames.append)
        first_id, _ = stream.push("a", True)
        second_id, _ = stream.push("b", False)
        assert first_id != second_id
        assert stream.current_state() == (second_id, "b")

    def test_explicit_different_stream_id_restarts(self):
        stream = StreamBroadcaster()
        frames = []
        stream.register(frames.append)
        stream.push("a", False, "s1")
        stream.push("b", False, "s1")
        stream.push("c", False, "s2")
        types = [e["type"] for e in _events(frames)]
        assert types == ["start", "chunk", "chunk", "start", "chunk"]
        assert stream.current_state() == ("s2", "c")

    def test_failing_sink_does_not_block_others(self):
        stream = StreamBroadcaster()
        frames = []

        def broken(frame):
            raise ConnectionError("gone")

        stream.register(broken)
        stream.register(frames.append)
        stream.push("x", True)
        assert len(frames) == 3

    def test_unregister_is_idempotent(self):
        stream = StreamBroadcaster()
        frames = []
        subscriber_id = stream.register(frames.append)
        stream.unregister(subscriber_id)
        stream.unregister(subscriber_id)
        stream.push("x", False)
        assert frames == []
        assert stream.subscriber_count == 0

    def test_frames_are_sse_data_lines(self):
        stream = StreamBroadcaster()
        frames = []
        stream.register(frames.append)
        stream.push("x", False)
        assert all(f.startswith("data: ") and f.endswith("\n\n") for f in frames)

    def test_concurrent_pushes_do_not_interleave(self):
        stream = StreamBroadcaster()
        frames = []

        def slow_sink(frame):
            time.sleep(0.01)
            frames.append(frame)

        stream.register(slow_sink)
        threads = [
            threading.Thread(target=stream.push, args=(name, True, name))
            for name in ("a", "b", "c")
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        events = _events(frames)
        assert len(events) == 9
        for offset in range(0, 9, 3):
            group = events[offset:offset + 3]
            assert [e["type"] for e in group] == ["start", "chunk", "end"]
            assert len({e["data"]["streamId"] for e in group}) == 1
