"""
Action Executor: turns a queued batch of agent intents into a new world.

Behavioral Contract:
- The input world is never mutated; each batch works on a deep copy.
- The simulation is paused for the duration of the batch and the prior
  speed restored afterwards, unless the batch set the speed itself.
- No intent ever raises to the caller. Inapplicable intents (unaffordable,
  out of range, already in the requested state) are no-ops, and a handler
  that fails is logged and skipped. The only signal of a no-op is that
  the next observation is unchanged.
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from city_bridge.execution.tools import (
    building_for_tool,
    bulldoze,
    create_bridges_on_path,
    place_building,
    place_subway,
    place_zone,
    terraform_land,
    terraform_water,
    tool_cost,
    zone_for_tool,
)
from city_bridge.models.execution import ExecutionReport
from city_bridge.models.intent import (
    ActionBatch,
    AdvanceTicks,
    AgentAction,
    BuildTrackBetween,
    BuildTrackPath,
    PlaceTool,
    SetBudgetFunding,
    SetSpeed,
    SetTaxRate,
    Tool,
    ZoneRect,
)
from city_bridge.models.world import Point, World
from city_bridge.routing.pathfinder import route
from city_bridge.simulation.tick import simulate_tick

logger = logging.getLogger("city_bridge.execution")

TickFunction = Callable[[World], World]
Handler = Callable[[World, AgentAction], Optional[World]]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class BatchScope:
    """Holds the world being built while a batch is in flight."""

    def __init__(self, world: World):
        self.world = world
        self.prior_speed = world.speed
        self.speed_overridden = False


@contextmanager
def paused(world: World) -> Iterator[BatchScope]:
    """Pause the world for a batch and restore its speed on the way out."""
    scope = BatchScope(world)
    scope.world.speed = 0
    try:
        yield scope
    finally:
        if not scope.speed_overridden:
            scope.world.speed = scope.prior_speed


def try_place_tool(world: World, tool: Tool, x: int, y: int) -> bool:
    """
    Apply ``tool`` at (x, y), charging its cost on success.

    Returns False, leaving the world untouched, when the tile is missing,
    the tool is unaffordable, the tile is already in the target state or
    the tool's preconditions fail.
    """
    tile = world.tile_at(x, y)
    if tile is None:
        return False
    cost = tool_cost(tool)
    if cost > 0 and world.stats.money < cost:
        return False

    if tool == Tool.SUBWAY:
        changed = place_subway(world, x, y)
    elif tool == Tool.ZONE_WATER:
        changed = terraform_water(world, x, y)
    elif tool == Tool.ZONE_LAND:
        changed = terraform_land(world, x, y)
    elif tool == Tool.BULLDOZE:
        changed = bulldoze(world, x, y)
    else:
        zone = zone_for_tool(tool)
        building = building_for_tool(tool)
        if zone is not None:
            changed = tile.zone != zone and place_zone(world, x, y, zone)
        elif building is not None:
            changed = tile.building.type != building and place_building(world, x, y, building)
        else:
            changed = False

    if changed and cost > 0:
        world.stats.money -= cost
    return changed


def _lay_track(world: World, tool: Tool, path: List[Point]) -> int:
    placed = 0
    for point in path:
        if try_place_tool(world, tool, point.x, point.y):
            placed += 1
    return placed


class ActionExecutor:
    """
    Interprets agent intents against a world.

    Handlers are registered per intent ``type``; each returns the resulting
    world, or None when the intent was a no-op.
    """

    def __init__(
        self,
        tick_fn: TickFunction = simulate_tick,
        max_advance_ticks: int = 500,
    ):
        self.tick_fn = tick_fn
        self.max_advance_ticks = max_advance_ticks
        self._handlers: Dict[str, Handler] = {}
        self._register_default_handlers()

    def _register_default_handlers(self) -> None:
        self._handlers["setSpeed"] = self._set_speed
        self._handlers["setTaxRate"] = self._set_tax_rate
        self._handlers["setBudgetFunding"] = self._set_budget_funding
        self._handlers["place"] = self._place
        self._handlers["zoneRect"] = self._zone_rect
        self._handlers["buildTrackPath"] = self._build_track_path
        self._handlers["buildTrackBetween"] = self._build_track_between
        self._handlers["advanceTicks"] = self._advance_ticks

    def register_handler(self, intent_type: str, handler: Handler) -> None:
        """Replace or add the handler for an intent type."""
        self._handlers[intent_type] = handler

    def apply(self, world: World, batch: ActionBatch) -> World:
        """Apply every intent in ``batch`` in order and return the new world."""
        next_world, _ = self.apply_with_report(world, batch)
        return next_world

    def apply_with_report(
        self, world: World, batch: ActionBatch
    ) -> Tuple[World, ExecutionReport]:
        start_time = time.monotonic()
        applied = []
        skipped = []

        with paused(world.model_copy(deep=True)) as scope:
            for index, action in enumerate(batch.actions):
                if isinstance(action, SetSpeed):
                    scope.speed_overridden = True
                entry = {"index": index, "type": action.type}
                result = self._dispatch(scope.world, action, entry)
                if result is None:
                    skipped.append(entry)
                else:
                    scope.world = result
                    applied.append(entry)

        elapsed = time.monotonic() - start_time
        report = ExecutionReport(
            reason=batch.reason,
            actions_applied=applied,
            actions_skipped=skipped,
            speed_restored=not scope.speed_overridden,
            executed_at=datetime.now(timezone.utc),
            execution_duration_seconds=round(elapsed, 3),
        )
        logger.info(
            "[EXEC] Batch applied: %d applied, %d no-op, %.3fs",
            len(applied), len(skipped), elapsed,
        )
        return scope.world, report

    def _dispatch(self, world: World, action: AgentAction, entry: dict) -> Optional[World]:
        handler = self._handlers.get(action.type)
        if handler is None:
            entry["error"] = f"No handler registered for intent type: {action.type}"
            return None
        try:
            return handler(world, action)
        except Exception as e:
            logger.warning("[EXEC] Intent %s failed, treating as no-op: %s", action.type, e)
            entry["error"] = str(e)
            return None

    # --- Intent handlers ---

    def _set_speed(self, world: World, action: SetSpeed) -> World:
        world.speed = action.speed
        return world

    def _set_tax_rate(self, world: World, action: SetTaxRate) -> World:
        world.tax_rate = clamp(action.rate, 0, 100)
        return world

    def _set_budget_funding(self, world: World, action: SetBudgetFunding) -> World:
        category = getattr(world.budget, action.key)
        category.funding = clamp(action.funding, 0, 100)
        return world

    def _place(self, world: World, action: PlaceTool) -> Optional[World]:
        if not try_place_tool(world, action.tool, action.x, action.y):
            logger.debug("[EXEC] place %s at (%d, %d) was a no-op", action.tool.value, action.x, action.y)
            return None
        return world

    def _zone_rect(self, world: World, action: ZoneRect) -> Optional[World]:
        tool = Tool(action.tool)
        x1, x2 = sorted((action.x1, action.x2))
        y1, y2 = sorted((action.y1, action.y2))
        # Cells outside the grid are no-ops, so only the overlap is walked
        last = world.grid_size - 1
        x1, x2 = max(x1, 0), min(x2, last)
        y1, y2 = max(y1, 0), min(y2, last)
        changed = 0
        for y in range(y1, y2 + 1):
            for x in range(x1, x2 + 1):
                if try_place_tool(world, tool, x, y):
                    changed += 1
        return world if changed else None

    def _build_track_path(self, world: World, action: BuildTrackPath) -> Optional[World]:
        tool = Tool(action.track_type)
        full_path: List[Point] = []
        placed = 0
        for i in range(len(action.path) - 1):
            # Each segment is routed against the track already laid
            segment = route(world, action.path[i], action.path[i + 1], action.track_type)
            placed += _lay_track(world, tool, segment)
            for point in segment:
                # Consecutive segments share their joining waypoint
                if full_path and full_path[-1] == point:
                    continue
                full_path.append(point)
        placed += create_bridges_on_path(world, full_path)
        return world if placed else None

    def _build_track_between(self, world: World, action: BuildTrackBetween) -> Optional[World]:
        tool = Tool(action.track_type)
        path = route(world, action.start, action.end, action.track_type)
        placed = _lay_track(world, tool, path)
        placed += create_bridges_on_path(world, path)
        return world if placed else None

    def _advance_ticks(self, world: World, action: AdvanceTicks) -> Optional[World]:
        count = int(clamp(action.count, 0, self.max_advance_ticks))
        if count == 0:
            return None
        for _ in range(count):
            world = self.tick_fn(world)
        logger.debug("[EXEC] Advanced %d ticks", count)
        return world
