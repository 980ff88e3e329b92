"""
Simulation Loop: the host side of the bridge.

Each step drains queued action batches into the world, advances the
simulation by its current speed, and every few ticks publishes a fresh
observation for the agent. Batches run between ticks, never during one.
"""

import asyncio
import logging
from typing import Optional

from city_bridge.bridge.state import BridgeState
from city_bridge.execution.executor import ActionExecutor, TickFunction
from city_bridge.models.bridge import MessageType
from city_bridge.models.config import BridgeConfig
from city_bridge.models.observation import Observation
from city_bridge.observation.builder import ObservationBuilder
from city_bridge.simulation.tick import simulate_tick
from city_bridge.world_model.store import WorldStore

logger = logging.getLogger("city_bridge.simulation")


class SimulationLoop:
    """
    Owns the live world and feeds the bridge.

    States:
      IDLE → DRAIN_ACTIONS → TICK → (PUBLISH) → IDLE
    """

    def __init__(
        self,
        world_store: WorldStore,
        bridge: BridgeState,
        tick_fn: TickFunction = simulate_tick,
        config: Optional[BridgeConfig] = None,
        executor: Optional[ActionExecutor] = None,
        builder: Optional[ObservationBuilder] = None,
    ):
        self.world_store = world_store
        self.bridge = bridge
        self.tick_fn = tick_fn
        self.config = config or BridgeConfig()
        self.executor = executor or ActionExecutor(
            tick_fn=tick_fn,
            max_advance_ticks=self.config.max_advance_ticks,
        )
        self.builder = builder or ObservationBuilder(
            hotspot_limit=self.config.hotspot_limit,
            window_radius=self.config.window_radius,
            max_windows=self.config.max_windows,
            road_access_max_distance=self.config.road_access_max_distance,
        )
        self._running = False
        self._last_published_tick: Optional[int] = None

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    def drain_actions(self) -> int:
        """Apply every queued batch in FIFO order. Returns how many ran."""
        applied = 0
        while True:
            batch = self.bridge.dequeue_batch()
            if batch is None:
                return applied
            world, report = self.executor.apply_with_report(self.world_store.world, batch)
            self.world_store.replace(world)
            applied += 1
            if batch.reason:
                self.bridge.add_message(MessageType.ACTION, batch.reason)
            if report.actions_skipped:
                logger.info(
                    "[SIM] %d of %d actions had no effect",
                    len(report.actions_skipped), len(batch.actions),
                )

    def advance(self) -> None:
        """Run as many ticks as the current speed asks for."""
        world = self.world_store.world
        for _ in range(world.speed):
            world = self.tick_fn(world)
        self.world_store.replace(world)

    def publish_observation(self) -> Observation:
        world = self.world_store.world
        observation = self.builder.build(world)
        self.bridge.set_latest_observation(observation)
        self._last_published_tick = world.tick
        logger.debug("[SIM] Observation published at tick %d", world.tick)
        return observation

    def step(self) -> None:
        """One loop iteration: drain, tick, maybe publish."""
        drained = self.drain_actions()
        self.advance()
        tick = self.world_store.world.tick
        due = (
            self._last_published_tick is None
            or drained > 0
            or tick - self._last_published_tick >= self.config.observation_interval_ticks
        )
        if due:
            self.publish_observation()

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Run the loop until ``stop_event`` is set.

        Each step runs on a worker thread; the event loop stays free for
        the HTTP layer and its open streams.
        """
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                await asyncio.to_thread(self.step)
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.config.loop_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False
