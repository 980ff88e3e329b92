"""Tests for the host-side Simulation Loop."""

import asyncio
import threading
import time

from city_bridge.bridge.state import BridgeState
from city_bridge.models.config import BridgeConfig
from city_bridge.models.intent import ActionBatch
from city_bridge.models.world import BuildingType, create_world
from city_bridge.simulation.loop import SimulationLoop
from city_bridge.world_model.store import WorldStore


def _loop(speed: int = 0, **config) -> SimulationLoop:
    store = WorldStore(create_world(8, speed=speed))
    return SimulationLoop(store, BridgeState(), config=BridgeConfig(**config))


class TestSimulationLoop:
    def test_drain_applies_batches_in_order(self):
        loop = _loop()
        loop.bridge.enqueue_batch(ActionBatch.model_validate({
            "actions": [{"type": "setTaxRate", "rate": 20}],
        }))
        loop.bridge.enqueue_batch(ActionBatch.model_validate({
            "actions": [{"type": "setTaxRate", "rate": 30}],
        }))
        assert loop.drain_actions() == 2
        assert loop.world_store.world.tax_rate == 30
        assert loop.bridge.queue_length == 0

    def test_batch_reason_posted_to_chat(self):
        loop = _loop()
        loop.bridge.enqueue_batch(ActionBatch.model_validate({
            "actions": [{"type": "place", "tool": "road", "x": 1, "y": 1}],
            "reason": "connect the mill",
        }))
        loop.drain_actions()
        messages = loop.bridge.get_messages_since()
        assert [(m.type.value, m.content) for m in messages] == [("action", "connect the mill")]
        assert loop.world_store.world.grid[1][1].building.type == BuildingType.ROAD

    def test_advance_uses_speed(self):
        loop = _loop(speed=3)
        loop.advance()
        assert loop.world_store.world.tick == 3

    def test_paused_world_does_not_tick(self):
        loop = _loop(speed=0)
        loop.advance()
        assert loop.world_store.world.tick == 0

    def test_step_publishes_first_observation(self):
        loop = _loop(speed=1, observation_interval_ticks=5)
        loop.step()
        observation, _ = loop.bridge.get_latest_observation()
        assert observation is not None
        assert observation.time.tick == 1

    def test_step_publishes_on_interval(self):
        loop = _loop(speed=1, observation_interval_ticks=3)
        loop.step()
        loop.step()
        observation, _ = loop.bridge.get_latest_observation()
        assert observation.time.tick == 1
        loop.step()
        loop.step()
        observation, _ = loop.bridge.get_latest_observation()
        assert observation.time.tick == 4

    def test_run_async_stops_on_event(self):
        loop = _loop(speed=1, loop_interval_seconds=0.01)

        async def scenario():
            stop = asyncio.Event()
            task = asyncio.create_task(loop.run_async(stop))
            await asyncio.sleep(0.05)
            assert loop.status == "running"
            stop.set()
            await task

        asyncio.run(scenario())
        assert loop.status == "stopped"
        assert loop.world_store.world.tick >= 1

    def test_event_loop_serves_streams_while_batch_runs(self):
        entered = threading.Event()
        release = threading.Event()

        def slow_tick(world):
            entered.set()
            release.wait(timeout=5)
            world.tick += 1
            return world

        bridge = BridgeState()
        loop = SimulationLoop(
            WorldStore(create_world(4, speed=0)),
            bridge,
            tick_fn=slow_tick,
            config=BridgeConfig(loop_interval_seconds=0.01),
        )
        bridge.enqueue_batch(ActionBatch.model_validate({
            "actions": [{"type": "advanceTicks", "count": 1}],
        }))

        async def scenario():
            event_loop = asyncio.get_running_loop()
            frames: asyncio.Queue = asyncio.Queue()
            bridge.stream.register(
                lambda frame: event_loop.call_soon_threadsafe(frames.put_nowait, frame)
            )
            stop = asyncio.Event()
            task = asyncio.create_task(loop.run_async(stop))
            started = time.monotonic()
            while not entered.is_set():
                await asyncio.sleep(0.01)

            bridge.stream.push("still streaming", True)
            frame = await asyncio.wait_for(frames.get(), timeout=1)
            assert frame.startswith("data: ")
            assert time.monotonic() - started < 2
            assert not release.is_set()

            release.set()
            stop.set()
            await task

        asyncio.run(scenario())
        assert loop.world_store.world.tick == 1


class TestWorldStore:
    def test_default_world(self):
        store = WorldStore()
        assert store.world.grid_size == 32

    def test_replace_swaps_world(self):
        store = WorldStore(create_world(4))
        nxt = create_world(6)
        store.replace(nxt)
        assert store.world is nxt
