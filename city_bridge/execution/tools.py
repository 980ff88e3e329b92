"""
Tool catalogue and tile placement primitives.

These primitives stand in for the simulation's own placement functions.
Each mutates the given world in place and returns True when the tile
actually changed; callers are responsible for charging the tool cost.
"""

from typing import Dict, List, Optional

from city_bridge.models.intent import Tool
from city_bridge.models.world import (
    GROWTH_BUILDINGS,
    Building,
    BuildingType,
    Point,
    World,
    ZoneType,
)

TOOL_COSTS: Dict[Tool, int] = {
    Tool.BULLDOZE: 10,
    Tool.ROAD: 25,
    Tool.RAIL: 40,
    Tool.SUBWAY: 50,
    Tool.ZONE_RESIDENTIAL: 50,
    Tool.ZONE_COMMERCIAL: 50,
    Tool.ZONE_INDUSTRIAL: 50,
    Tool.ZONE_DEZONE: 0,
    Tool.ZONE_WATER: 150,
    Tool.ZONE_LAND: 150,
    Tool.POLICE_STATION: 500,
    Tool.FIRE_STATION: 500,
    Tool.HOSPITAL: 1000,
    Tool.SCHOOL: 400,
    Tool.UNIVERSITY: 2000,
    Tool.POWER_PLANT: 3000,
    Tool.WATER_TOWER: 1000,
    Tool.SUBWAY_STATION: 750,
}

BRIDGE_COST_PER_TILE = 50

ZONE_TOOLS: Dict[Tool, ZoneType] = {
    Tool.ZONE_RESIDENTIAL: ZoneType.RESIDENTIAL,
    Tool.ZONE_COMMERCIAL: ZoneType.COMMERCIAL,
    Tool.ZONE_INDUSTRIAL: ZoneType.INDUSTRIAL,
    Tool.ZONE_DEZONE: ZoneType.NONE,
}

BUILDING_TOOLS: Dict[Tool, BuildingType] = {
    Tool.ROAD: BuildingType.ROAD,
    Tool.RAIL: BuildingType.RAIL,
    Tool.POLICE_STATION: BuildingType.POLICE_STATION,
    Tool.FIRE_STATION: BuildingType.FIRE_STATION,
    Tool.HOSPITAL: BuildingType.HOSPITAL,
    Tool.SCHOOL: BuildingType.SCHOOL,
    Tool.UNIVERSITY: BuildingType.UNIVERSITY,
    Tool.POWER_PLANT: BuildingType.POWER_PLANT,
    Tool.WATER_TOWER: BuildingType.WATER_TOWER,
    Tool.SUBWAY_STATION: BuildingType.SUBWAY_STATION,
}

# Tiles that can be zoned over without demolishing infrastructure
ZONABLE = frozenset({BuildingType.GRASS, BuildingType.TREE}) | GROWTH_BUILDINGS


def tool_cost(tool: Tool) -> int:
    return TOOL_COSTS.get(tool, 0)


def zone_for_tool(tool: Tool) -> Optional[ZoneType]:
    return ZONE_TOOLS.get(tool)


def building_for_tool(tool: Tool) -> Optional[BuildingType]:
    return BUILDING_TOOLS.get(tool)


def place_zone(world: World, x: int, y: int, zone: ZoneType) -> bool:
    tile = world.tile_at(x, y)
    if tile is None or tile.building.type not in ZONABLE:
        return False
    if zone == ZoneType.NONE and tile.building.type in GROWTH_BUILDINGS:
        tile.building = Building()
    elif tile.building.type == BuildingType.TREE:
        tile.building = Building()
    tile.zone = zone
    return True


def place_building(world: World, x: int, y: int, building_type: BuildingType) -> bool:
    tile = world.tile_at(x, y)
    if tile is None:
        return False
    if tile.building.type in (BuildingType.WATER, BuildingType.BRIDGE):
        return False
    tile.building = Building(type=building_type)
    tile.zone = ZoneType.NONE
    return True


def bulldoze(world: World, x: int, y: int) -> bool:
    tile = world.tile_at(x, y)
    if tile is None or tile.building.type == BuildingType.WATER:
        return False
    if tile.building.type == BuildingType.GRASS and tile.zone == ZoneType.NONE:
        return False
    if tile.building.type == BuildingType.BRIDGE:
        tile.building = Building(type=BuildingType.WATER)
    else:
        tile.building = Building()
    tile.zone = ZoneType.NONE
    return True


def terraform_water(world: World, x: int, y: int) -> bool:
    tile = world.tile_at(x, y)
    if tile is None or tile.building.type in (BuildingType.WATER, BuildingType.BRIDGE):
        return False
    tile.building = Building(type=BuildingType.WATER)
    tile.zone = ZoneType.NONE
    tile.has_subway = False
    return True


def terraform_land(world: World, x: int, y: int) -> bool:
    tile = world.tile_at(x, y)
    if tile is None or tile.building.type != BuildingType.WATER:
        return False
    tile.building = Building()
    return True


def place_subway(world: World, x: int, y: int) -> bool:
    tile = world.tile_at(x, y)
    if tile is None or tile.has_subway or tile.building.type == BuildingType.WATER:
        return False
    tile.has_subway = True
    return True


def water_spans(world: World, path: List[Point]) -> List[List[Point]]:
    """Maximal runs of water on ``path`` bounded by land on both sides."""
    spans: List[List[Point]] = []
    run: List[Point] = []
    seen_land = False
    for point in path:
        tile = world.tile_at(point.x, point.y)
        if tile is not None and tile.building.type == BuildingType.WATER:
            if seen_land:
                run.append(point)
            continue
        if tile is None:
            run, seen_land = [], False
            continue
        if run:
            spans.append(run)
            run = []
        seen_land = True
    return spans


def create_bridges_on_path(world: World, path: List[Point]) -> int:
    """
    Bridge every water span the path crosses, one span at a time.

    A span is only built when the whole span is affordable. Returns the
    number of bridge tiles placed.
    """
    placed = 0
    for span in water_spans(world, path):
        cost = BRIDGE_COST_PER_TILE * len(span)
        if world.stats.money < cost:
            continue
        for point in span:
            world.grid[point.y][point.x].building = Building(type=BuildingType.BRIDGE)
        world.stats.money -= cost
        placed += len(span)
    return placed
