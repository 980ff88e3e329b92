"""World: the simulated city grid plus its global scalars at one instant."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ZoneType(str, Enum):
    NONE = "none"
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"


class BuildingType(str, Enum):
    GRASS = "grass"
    TREE = "tree"
    WATER = "water"
    ROAD = "road"
    RAIL = "rail"
    BRIDGE = "bridge"
    POWER_PLANT = "power_plant"
    WATER_TOWER = "water_tower"
    POLICE_STATION = "police_station"
    FIRE_STATION = "fire_station"
    HOSPITAL = "hospital"
    SCHOOL = "school"
    UNIVERSITY = "university"
    SUBWAY_STATION = "subway_station"
    # Grown by the simulation on zoned land
    HOUSE = "house"
    SHOP = "shop"
    FACTORY = "factory"


GROWTH_BUILDINGS = frozenset({BuildingType.HOUSE, BuildingType.SHOP, BuildingType.FACTORY})


class WireModel(BaseModel):
    """Base for models that travel as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class Point(WireModel):
    x: int
    y: int

    def as_tuple(self) -> tuple:
        return (self.x, self.y)


class Building(WireModel):
    type: BuildingType = BuildingType.GRASS
    level: int = Field(ge=0, default=0)
    population: int = Field(ge=0, default=0)
    jobs: int = Field(ge=0, default=0)
    powered: bool = False
    watered: bool = False


class Tile(WireModel):
    """One grid cell."""

    x: int
    y: int
    zone: ZoneType = ZoneType.NONE
    building: Building = Field(default_factory=Building)
    traffic: float = Field(ge=0, default=0)
    pollution: float = Field(ge=0, default=0)
    crime: float = Field(ge=0, default=0)
    land_value: float = Field(ge=0, default=0)
    has_subway: bool = False


class BudgetCategory(WireModel):
    name: str
    funding: float = Field(ge=0, le=100, default=100)
    cost: float = 0


class Budget(WireModel):
    """Per-category funding levels."""

    police: BudgetCategory = BudgetCategory(name="Police")
    fire: BudgetCategory = BudgetCategory(name="Fire")
    health: BudgetCategory = BudgetCategory(name="Health")
    education: BudgetCategory = BudgetCategory(name="Education")
    transportation: BudgetCategory = BudgetCategory(name="Transportation")
    parks: BudgetCategory = BudgetCategory(name="Parks")
    power: BudgetCategory = BudgetCategory(name="Power")
    water: BudgetCategory = BudgetCategory(name="Water")


class Stats(WireModel):
    population: int = 0
    jobs: int = 0
    money: float = 100000
    income: float = 0
    expenses: float = 0
    happiness: float = 50
    health: float = 50
    education: float = 50
    safety: float = 50
    environment: float = 50


class ServiceCoverage(WireModel):
    """Per-tile service layers, addressed [y][x]."""

    police: List[List[float]]
    fire: List[List[float]]
    health: List[List[float]]
    education: List[List[float]]
    power: List[List[bool]]
    water: List[List[bool]]


class World(WireModel):
    """The full simulated grid plus global scalars."""

    id: str
    city_name: str
    grid_size: int = Field(gt=0)
    grid: List[List[Tile]]
    tick: int = 0
    year: int = 2024
    month: int = Field(ge=1, le=12, default=1)
    day: int = Field(ge=1, le=31, default=1)
    hour: int = Field(ge=0, le=23, default=0)
    speed: int = Field(ge=0, le=3, default=1)
    tax_rate: float = Field(ge=0, le=100, default=9)
    budget: Budget = Field(default_factory=Budget)
    stats: Stats = Field(default_factory=Stats)
    services: ServiceCoverage

    @model_validator(mode="after")
    def _check_dimensions(self) -> "World":
        size = self.grid_size
        if len(self.grid) != size or any(len(row) != size for row in self.grid):
            raise ValueError(f"grid must be {size}x{size}")
        for name in ("police", "fire", "health", "education", "power", "water"):
            layer = getattr(self.services, name)
            if len(layer) != size or any(len(row) != size for row in layer):
                raise ValueError(f"services.{name} must be {size}x{size}")
        return self

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.grid_size and 0 <= y < self.grid_size

    def tile_at(self, x: int, y: int) -> Optional[Tile]:
        """Tile at (x, y), or None when out of range. Never wraps."""
        if not self.in_bounds(x, y):
            return None
        return self.grid[y][x]


def create_world(
    size: int,
    city_id: str = "city",
    city_name: str = "New City",
    money: float = 100000,
    speed: int = 1,
) -> World:
    """Build an all-grass world with empty service layers."""
    grid = [[Tile(x=x, y=y) for x in range(size)] for y in range(size)]
    services = ServiceCoverage(
        police=[[0.0] * size for _ in range(size)],
        fire=[[0.0] * size for _ in range(size)],
        health=[[0.0] * size for _ in range(size)],
        education=[[0.0] * size for _ in range(size)],
        power=[[False] * size for _ in range(size)],
        water=[[False] * size for _ in range(size)],
    )
    return World(
        id=city_id,
        city_name=city_name,
        grid_size=size,
        grid=grid,
        speed=speed,
        stats=Stats(money=money),
        services=services,
    )
