"""
Observation Builder: compresses a world into a bounded agent snapshot.

One full scan of the grid gathers counts, coverage, per-metric hotspots
and development-weighted service deficits. Raw per-tile lists are cut to
the top entries, and a few small ASCII windows around the worst spots
give the agent local context without shipping the whole grid.
"""

import logging
import math
import time
from collections import deque
from typing import Dict, List, Optional

from city_bridge.models.observation import (
    AGENT_API_VERSION,
    BuildingCounts,
    CityRef,
    Controls,
    CoveragePct,
    GridSummary,
    Hotspot,
    Hotspots,
    LocalWindow,
    Observation,
    ServiceDeficits,
    Services,
    Spatial,
    TimeInfo,
    ZoneCounts,
)
from city_bridge.models.world import (
    Budget,
    BuildingType,
    Point,
    Stats,
    Tile,
    World,
    ZoneType,
)
from city_bridge.routing.pathfinder import NEIGHBOR_DELTAS

logger = logging.getLogger("city_bridge.observation")

COVERAGE_SERVICES = ("police", "fire", "health", "education")
UTILITY_SERVICES = ("power", "water")

COUNTED_BUILDINGS = (
    BuildingType.ROAD,
    BuildingType.RAIL,
    BuildingType.POWER_PLANT,
    BuildingType.WATER_TOWER,
    BuildingType.POLICE_STATION,
    BuildingType.FIRE_STATION,
    BuildingType.HOSPITAL,
    BuildingType.SCHOOL,
    BuildingType.UNIVERSITY,
)

ROAD_ACCESS = frozenset({BuildingType.ROAD, BuildingType.BRIDGE})

BUILDING_SYMBOLS: Dict[BuildingType, str] = {
    BuildingType.WATER: "~",
    BuildingType.BRIDGE: "#",
    BuildingType.ROAD: "=",
    BuildingType.RAIL: "-",
    BuildingType.POWER_PLANT: "P",
    BuildingType.WATER_TOWER: "W",
    BuildingType.POLICE_STATION: "p",
    BuildingType.FIRE_STATION: "f",
    BuildingType.HOSPITAL: "h",
    BuildingType.SCHOOL: "s",
    BuildingType.UNIVERSITY: "u",
    BuildingType.TREE: "t",
}

ZONE_SYMBOLS: Dict[ZoneType, str] = {
    ZoneType.RESIDENTIAL: "R",
    ZoneType.COMMERCIAL: "C",
    ZoneType.INDUSTRIAL: "I",
}


def coverage_pct(covered: int, total: int) -> float:
    if total <= 0:
        return 0.0
    value = covered / total * 100
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(100.0, value))


def top_hotspots(entries: List[Hotspot], limit: int) -> List[Hotspot]:
    """Highest positive values first; ties keep scan order."""
    ranked = [e for e in entries if math.isfinite(e.value) and e.value > 0]
    ranked.sort(key=lambda e: e.value, reverse=True)
    return ranked[:limit]


def is_developed(tile: Tile) -> bool:
    return (
        tile.zone != ZoneType.NONE
        or tile.building.population > 0
        or tile.building.jobs > 0
    )


def tile_symbol(tile: Tile) -> str:
    symbol = BUILDING_SYMBOLS.get(tile.building.type)
    if symbol is not None:
        return symbol
    return ZONE_SYMBOLS.get(tile.zone, ".")


def render_window(world: World, center_x: int, center_y: int, radius: int) -> List[str]:
    """ASCII rows for the square of ``radius`` around a tile, clipped to the grid."""
    last = world.grid_size - 1
    min_x, max_x = max(0, center_x - radius), min(last, center_x + radius)
    min_y, max_y = max(0, center_y - radius), min(last, center_y + radius)
    return [
        "".join(tile_symbol(world.grid[y][x]) for x in range(min_x, max_x + 1))
        for y in range(min_y, max_y + 1)
    ]


def has_adjacent_road(world: World, x: int, y: int) -> bool:
    for dx, dy in NEIGHBOR_DELTAS:
        neighbor = world.tile_at(x + dx, y + dy)
        if neighbor is not None and neighbor.building.type in ROAD_ACCESS:
            return True
    return False


def has_road_access_within_zone(world: World, x: int, y: int, max_distance: int = 8) -> bool:
    """
    Search outward through same-zone land for a road or bridge.

    The search never leaves the starting tile's zone, so one unserved
    district cannot flood deficits into its neighbours.
    """
    start = world.tile_at(x, y)
    if start is None:
        return False
    if start.zone == ZoneType.NONE:
        return True

    visited = {(x, y)}
    queue = deque([(x, y, 0)])
    while queue:
        cx, cy, dist = queue.popleft()
        if dist >= max_distance:
            continue
        for dx, dy in NEIGHBOR_DELTAS:
            nx, ny = cx + dx, cy + dy
            if (nx, ny) in visited:
                continue
            visited.add((nx, ny))
            tile = world.tile_at(nx, ny)
            if tile is None:
                continue
            if tile.building.type in ROAD_ACCESS:
                return True
            if tile.zone == start.zone and tile.building.type != BuildingType.WATER:
                queue.append((nx, ny, dist + 1))
    return False


class ObservationBuilder:
    """Builds observations from worlds. Stateless apart from its limits."""

    def __init__(
        self,
        hotspot_limit: int = 10,
        window_radius: int = 6,
        max_windows: int = 3,
        road_access_max_distance: int = 8,
    ):
        self.hotspot_limit = hotspot_limit
        self.window_radius = window_radius
        self.max_windows = max_windows
        self.road_access_max_distance = road_access_max_distance

    def build(self, world: World, now_ms: Optional[int] = None) -> Observation:
        size = world.grid_size
        services = world.services
        zone_counts = {zone.value: 0 for zone in ZoneType}
        building_counts = {b.value: 0 for b in COUNTED_BUILDINGS}
        metrics: Dict[str, List[Hotspot]] = {"traffic": [], "pollution": [], "crime": []}
        covered = {name: 0 for name in COVERAGE_SERVICES + UTILITY_SERVICES}
        deficits: Dict[str, List[Hotspot]] = {
            name: [] for name in COVERAGE_SERVICES + UTILITY_SERVICES + ("road_access",)
        }
        developed = 0

        for y in range(size):
            for x in range(size):
                tile = world.grid[y][x]
                zone_counts[tile.zone.value] += 1
                if tile.building.type.value in building_counts:
                    building_counts[tile.building.type.value] += 1

                for metric, entries in metrics.items():
                    value = getattr(tile, metric)
                    if value > 0:
                        entries.append(Hotspot(x=x, y=y, value=value))

                for name in COVERAGE_SERVICES:
                    if getattr(services, name)[y][x] > 0:
                        covered[name] += 1
                for name in UTILITY_SERVICES:
                    if getattr(services, name)[y][x]:
                        covered[name] += 1

                if not is_developed(tile):
                    continue
                developed += 1
                weight = 1 + tile.building.population + tile.building.jobs

                for name in COVERAGE_SERVICES:
                    shortfall = max(0.0, 100 - getattr(services, name)[y][x])
                    deficits[name].append(Hotspot(x=x, y=y, value=shortfall * weight))
                for name in UTILITY_SERVICES:
                    if not getattr(services, name)[y][x]:
                        deficits[name].append(Hotspot(x=x, y=y, value=weight * 100))

                if (
                    tile.zone != ZoneType.NONE
                    and weight > 1
                    and not has_adjacent_road(world, x, y)
                    and not has_road_access_within_zone(
                        world, x, y, self.road_access_max_distance
                    )
                ):
                    deficits["road_access"].append(Hotspot(x=x, y=y, value=weight))

        limit = self.hotspot_limit
        hotspots = {metric: top_hotspots(entries, limit) for metric, entries in metrics.items()}
        ranked_deficits = {name: top_hotspots(entries, limit) for name, entries in deficits.items()}
        total = size * size

        observation = Observation(
            api_version=AGENT_API_VERSION,
            at=now_ms if now_ms is not None else int(time.time() * 1000),
            city=CityRef(id=world.id, name=world.city_name),
            time=TimeInfo(
                tick=world.tick,
                year=world.year,
                month=world.month,
                day=world.day,
                hour=world.hour,
            ),
            controls=Controls(
                speed=world.speed,
                tax_rate=world.tax_rate,
                budget=Budget.model_validate(world.budget.model_dump()),
            ),
            stats=Stats.model_validate(world.stats.model_dump()),
            grid=GridSummary(
                size=size,
                zone_counts=ZoneCounts(**zone_counts),
                building_counts=BuildingCounts(**building_counts),
            ),
            services=Services(
                coverage_pct=CoveragePct(
                    **{name: coverage_pct(count, total) for name, count in covered.items()}
                )
            ),
            hotspots=Hotspots(**hotspots),
            spatial=Spatial(
                developed_tiles=developed,
                service_deficits=ServiceDeficits(**ranked_deficits),
                windows=self._windows(world, hotspots, ranked_deficits),
            ),
        )
        logger.debug(
            "[OBS] Built observation for %s at tick %d: %d developed tiles",
            world.id, world.tick, developed,
        )
        return observation

    def _windows(
        self,
        world: World,
        hotspots: Dict[str, List[Hotspot]],
        deficits: Dict[str, List[Hotspot]],
    ) -> List[LocalWindow]:
        candidates = [
            ("crime_hotspot", hotspots["crime"]),
            ("pollution_hotspot", hotspots["pollution"]),
            ("road_access_gap", deficits["road_access"]),
        ]
        windows = []
        for label, ranked in candidates:
            if not ranked:
                continue
            worst = ranked[0]
            windows.append(LocalWindow(
                label=label,
                center=Point(x=worst.x, y=worst.y),
                radius=self.window_radius,
                rows=render_window(world, worst.x, worst.y, self.window_radius),
            ))
        return windows[: self.max_windows]
