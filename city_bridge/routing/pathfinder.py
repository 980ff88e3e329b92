"""
Track routing over the world's passability graph.

Unweighted breadth-first search, 4-connected, with a fixed neighbour
order (west, east, north, south) so that routes are reproducible for a
given world. When either endpoint is blocked or the goal is unreachable
the router falls back to a direct axis-aligned stepping path instead of
failing; callers must tolerate such paths crossing impassable tiles.
"""

import logging
from collections import deque
from typing import Dict, List, Optional, Tuple

from city_bridge.models.world import BuildingType, Point, World

logger = logging.getLogger("city_bridge.routing")

Cell = Tuple[int, int]

# West, east, north, south
NEIGHBOR_DELTAS = ((-1, 0), (1, 0), (0, -1), (0, 1))

OPEN_GROUND = frozenset({
    BuildingType.GRASS,
    BuildingType.TREE,
    BuildingType.ROAD,
    BuildingType.RAIL,
})


def is_passable(building_type: BuildingType, track_type: str) -> bool:
    """Whether a tile of ``building_type`` may carry ``track_type`` track."""
    if building_type == BuildingType.WATER:
        return False
    if building_type == BuildingType.BRIDGE:
        return True
    # Road and rail may share space, so both accept either existing track.
    if track_type in ("road", "rail"):
        return building_type in OPEN_GROUND
    return False


def _steps(a: int, b: int, size: Optional[int]) -> range:
    """Unit steps from ``a`` to ``b`` inclusive, limited to ``[0, size)``."""
    if b >= a:
        lo, hi = a, b
        if size is not None:
            lo, hi = max(lo, 0), min(hi, size - 1)
        return range(lo, hi + 1)
    hi, lo = a, b
    if size is not None:
        hi, lo = min(hi, size - 1), max(lo, 0)
    return range(hi, lo - 1, -1)


def manhattan_path(start: Point, goal: Point, size: Optional[int] = None) -> List[Point]:
    """
    Step along x to the goal column, then along y to the goal row.

    With ``size`` the path keeps only the cells inside a ``size`` x ``size``
    grid, without walking the off-grid stretches.
    """
    def inside(value: int) -> bool:
        return size is None or 0 <= value < size

    path: List[Point] = []
    if inside(start.y):
        path.extend(Point(x=x, y=start.y) for x in _steps(start.x, goal.x, size))
    if goal.y != start.y and inside(goal.x):
        first = start.y + (1 if goal.y > start.y else -1)
        path.extend(Point(x=goal.x, y=y) for y in _steps(first, goal.y, size))
    return path


def _passable_at(world: World, x: int, y: int, track_type: str) -> bool:
    tile = world.tile_at(x, y)
    return tile is not None and is_passable(tile.building.type, track_type)


def route(world: World, start: Point, goal: Point, track_type: str) -> List[Point]:
    """Shortest 4-connected path from ``start`` to ``goal`` inclusive."""
    if not _passable_at(world, start.x, start.y, track_type):
        logger.debug("[ROUTE] Start %s blocked, using stepping path", start.as_tuple())
        return manhattan_path(start, goal, world.grid_size)
    if not _passable_at(world, goal.x, goal.y, track_type):
        logger.debug("[ROUTE] Goal %s blocked, using stepping path", goal.as_tuple())
        return manhattan_path(start, goal, world.grid_size)

    origin: Cell = (start.x, start.y)
    target: Cell = (goal.x, goal.y)
    prev: Dict[Cell, Optional[Cell]] = {origin: None}
    queue = deque([origin])

    while queue and target not in prev:
        cx, cy = queue.popleft()
        for dx, dy in NEIGHBOR_DELTAS:
            cell = (cx + dx, cy + dy)
            if cell in prev:
                continue
            if not _passable_at(world, cell[0], cell[1], track_type):
                continue
            prev[cell] = (cx, cy)
            if cell == target:
                break
            queue.append(cell)

    if target not in prev:
        logger.debug(
            "[ROUTE] No %s route %s -> %s, using stepping path",
            track_type, origin, target,
        )
        return manhattan_path(start, goal, world.grid_size)

    path: List[Point] = []
    cursor: Optional[Cell] = target
    while cursor is not None:
        path.append(Point(x=cursor[0], y=cursor[1]))
        cursor = prev[cursor]
    path.reverse()
    return path

